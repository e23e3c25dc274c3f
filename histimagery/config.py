"""
Central configuration for the historical imagery project.

This is the single source of truth for default values.
"""

# Number of archive queries in flight at once
DEFAULT_CONCURRENCY = 20

# Upper bound on concurrent Wayback metadata queries
WAYBACK_MAX_CONCURRENCY = 10

# Wayback release catalogue (one entry per imagery layer)
WAYBACK_CONFIG_URL = "https://s3-us-west-2.amazonaws.com/config.maptiles.arcgis.com/waybackconfig.json"

# Seconds before an HTTP request to an archive is abandoned
HTTP_TIMEOUT_SECONDS = 30

USER_AGENT = "historical-imagery-availability/1.0"

# CLI provider name used when --provider is omitted
DEFAULT_PROVIDER = "wayback"

# Date format used in console output and GeoJSON properties
DATE_FORMAT = "%Y-%m-%d"
