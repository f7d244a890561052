class TrackerError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TrackerError):
    """Input rejected before it reaches the store."""

    status_code = 400


class NotFoundError(TrackerError):
    """A project or entry looked up by id does not exist."""

    status_code = 404


class StoreUnavailable(TrackerError):
    """The database could not be reached. Never retried."""

    status_code = 503
