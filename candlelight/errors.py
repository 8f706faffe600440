"""Error taxonomy shared by the services and the HTTP layer."""

from __future__ import annotations

from typing import Any


class MemorialError(Exception):
    """Base exception carrying a machine-readable kind and an HTTP status."""

    kind = "error"
    status_code = 500
    default_message = "Something went wrong."

    def __init__(
        self, message: str | None = None, *, details: dict[str, Any] | None = None
    ) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.kind, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(MemorialError):
    """Raised when input is missing or malformed."""

    kind = "validation_error"
    status_code = 400
    default_message = "The submitted data is invalid."


class Unauthorized(MemorialError):
    """Raised when a request has no valid session or bad credentials."""

    kind = "unauthorized"
    status_code = 401
    default_message = "Authentication required."


class Forbidden(MemorialError):
    kind = "forbidden"
    status_code = 403
    default_message = "You do not have permission to do that."


class NotFound(MemorialError):
    kind = "not_found"
    status_code = 404
    default_message = "The requested resource was not found."


class Conflict(MemorialError):
    kind = "conflict"
    status_code = 409
    default_message = "The resource already exists."


class StorageFailure(MemorialError):
    """Raised in place of database errors so engine details stay internal."""

    kind = "storage_failure"
    status_code = 500
    default_message = "The operation could not be completed."
