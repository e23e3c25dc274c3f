"""
Historical imagery availability checker.

Thin wrapper so the tool can be run from a checkout without installing:

    python availability.py --provider wayback -z 17 --lower-left 47.60,-122.34 --upper-right 47.61,-122.33
"""

import sys

from histimagery.cli import main


if __name__ == "__main__":
    sys.exit(main())
