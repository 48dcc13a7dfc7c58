"""Error taxonomy shared by the repositories and the HTTP layer."""

from __future__ import annotations


class ApiError(Exception):
    """Base class for errors rendered as ``{error, message}`` responses."""

    status_code = 500
    error = "Internal Server Error"

    def __init__(self, message: str, *, error: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if error is not None:
            self.error = error

    def as_dict(self) -> dict[str, str]:
        return {"error": self.error, "message": self.message}


class BadRequestError(ApiError):
    status_code = 400
    error = "Bad Request"


class UnauthorizedError(ApiError):
    """Missing, malformed, expired, revoked or otherwise invalid credential."""

    status_code = 401
    error = "Unauthorized"


class ForbiddenError(ApiError):
    status_code = 403
    error = "Forbidden"


class NotFoundError(ApiError):
    status_code = 404
    error = "Not Found"


class ConflictError(ApiError):
    status_code = 409
    error = "Conflict"


class InternalError(ApiError):
    status_code = 500
    error = "Internal Server Error"
