"""
Exception hierarchy for the historical imagery project.

- RegionValidationError: bad region / zoom input, reported before any fetch
- ArchiveFetchError: an archive client could not retrieve or parse metadata
- AggregationError: a fetch task failed, the availability run did not finish
- RunCancelledError: the run was cancelled before all tasks were submitted
"""


class ImageryAvailabilityError(Exception):
    """Base class for all errors raised by this package."""


class RegionValidationError(ImageryAvailabilityError, ValueError):
    """Region, zoom level or provider options are invalid."""

    def __init__(self, messages):
        if isinstance(messages, str):
            messages = [messages]
        self.messages = list(messages)
        super().__init__("; ".join(self.messages))


class ArchiveFetchError(ImageryAvailabilityError):
    """Network or protocol failure while talking to an imagery archive."""


class AggregationError(ImageryAvailabilityError):
    """A fetch task failed, so the aggregated result is incomplete."""


class RunCancelledError(ImageryAvailabilityError):
    """The bounded runner stopped because cancellation was requested."""
