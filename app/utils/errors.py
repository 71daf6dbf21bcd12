class AppError(Exception):
    status_code = 500

    def __init__(self, detail: str = ""):
        super().__init__(detail)
        self.detail = detail or self.__class__.__name__


class Unauthorized(AppError):
    status_code = 401


class Forbidden(AppError):
    status_code = 403


class NotFound(AppError):
    status_code = 404


class ValidationError(AppError):
    status_code = 400


class InvalidState(AppError):
    status_code = 409


class ExternalServiceError(AppError):
    """A collaborator (store, photo bucket, identity provider) failed. Safe to retry."""

    status_code = 503
