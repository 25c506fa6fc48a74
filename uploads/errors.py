"""Error taxonomy shared by the storage core and the HTTP layer."""


class UploadsError(Exception):
    """Base error; ``status_code`` is the HTTP status it is reported with."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BadRequestError(UploadsError):
    status_code = 400


class AuthError(UploadsError):
    status_code = 401


class NotFoundError(UploadsError):
    status_code = 404


class ConstraintError(UploadsError):
    """Raised by the metadata store when a stored name is already taken."""

    status_code = 409


class InternalError(UploadsError):
    status_code = 500


class ConfigError(Exception):
    """Config file missing or malformed. Only raised at startup."""
