"""Error taxonomy shared by the services and the HTTP layer."""


class BookHavenError(Exception):
    status_code = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {"error": self.message}


class ValidationError(BookHavenError):
    """A required field is missing or a value is rejected by the store."""
    status_code = 400


class AuthError(BookHavenError):
    """Bad credentials or a missing, invalid or expired token."""
    status_code = 401


class OwnershipError(AuthError):
    """The caller is authenticated but does not own the resource."""
    status_code = 403

    def __init__(self, message="Unauthorized"):
        super().__init__(message)


class NotFoundError(BookHavenError):
    status_code = 404


class ConflictError(BookHavenError):
    status_code = 409


class MediaUploadError(BookHavenError):
    """The external media service rejected or failed an upload."""
    status_code = 502
