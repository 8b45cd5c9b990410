# rental_monitor/errors.py
"""Error taxonomy for a monitor run.

Only ``FatalRunError`` (and anything unexpected) fails a run; the other kinds are
contained closer to where they happen.
"""


class MonitorError(Exception):
    """Base class for errors raised by the run pipeline."""


class TransientExtractionError(MonitorError):
    """Navigation failed or the listing page never became ready.

    The pagination loop treats it as the end of the result set.
    """


class StoreWriteError(MonitorError):
    """A single listing could not be written; the listing is skipped."""

    def __init__(self, listing_id, message):
        super().__init__(f"{listing_id}: {message}")
        self.listing_id = listing_id


class NotificationError(MonitorError):
    """The notifier channel could not deliver the alert."""


class FatalRunError(MonitorError):
    """Unrecoverable pipeline failure; the run is recorded as unsuccessful."""
