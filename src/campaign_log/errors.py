"""Exceptions raised by the activity log engine.

Backing-resource failures are not wrapped: OSError from the file layer
reaches the caller unchanged.
"""


class ActivityLogError(Exception):
    """Base exception for all activity log errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class EntryDecodeError(ActivityLogError, ValueError):
    """Raised when a single entry block cannot be decoded into an event.

    Isolated per block during a rebuild; the block is recorded as corrupted.
    """


class EventNotFoundError(ActivityLogError, KeyError):
    """Raised when an operation targets an event id that is not in the log."""

    def __init__(self, event_id: str):
        super().__init__(f"Event with ID {event_id} not found", {"event_id": event_id})
        self.event_id = event_id


class ConcurrentModificationError(ActivityLogError):
    """Raised when the backing resource changed between read and write."""

    def __init__(self, message: str = "Activity log was modified during edit"):
        super().__init__(message)
