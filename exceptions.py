class TrackerError(Exception):
    """Base class for errors raised by the tracker core."""


class ValidationError(TrackerError, ValueError):
    """Input was malformed or out of range; nothing was written."""


class NotFoundError(TrackerError, LookupError):
    """Resource is missing or not owned by the caller."""


class ConflictError(TrackerError):
    """Request conflicts with the current state of a resource."""


class ActiveSessionExists(ConflictError):
    """The user already has an unfinished session."""

    def __init__(self, session_id: int) -> None:
        super().__init__("You already have an active session")
        self.session_id = session_id


class TransientError(TrackerError):
    """Storage is temporarily unavailable; the whole call may be retried."""
