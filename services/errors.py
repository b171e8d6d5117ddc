class MarksPortalError(Exception):
    """Base class for errors raised by the service layer."""

    status_code = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ValidationError(MarksPortalError):
    status_code = 400


class NotFoundError(MarksPortalError):
    status_code = 404


class PermissionDenied(MarksPortalError):
    status_code = 403


class PersistenceError(MarksPortalError):
    """The datastore rejected a write. Carries the store's own message."""

    status_code = 500
