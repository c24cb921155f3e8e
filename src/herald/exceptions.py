"""Errors raised by Herald.

Everything derives from HeraldError, whose to_dict() is the JSON body the
API returns. The API maps each subclass to a status code.
"""

from __future__ import annotations


class HeraldError(Exception):
    """Root of the Herald error hierarchy.

    Attributes:
        message: Text shown to API callers and written to logs.
        code: Stable identifier placed in error responses.
    """

    code: str = "herald_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def details(self) -> dict[str, object]:
        """Extra fields merged into the error body."""
        return {}

    def to_dict(self) -> dict[str, object]:
        return {"error": {"code": self.code, **self.details(), "message": self.message}}


class ValidationError(HeraldError):
    """A request or record carried a missing or malformed value."""

    code: str = "validation_error"

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(f"{field}: {message}")

    def details(self) -> dict[str, object]:
        return {"field": self.field}


class NotFoundError(HeraldError):
    """No subscription or heartbeat exists under the requested id."""

    code: str = "not_found"

    def __init__(self, resource_type: str, resource_id: str) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f"{resource_type} not found: {resource_id}")

    def details(self) -> dict[str, object]:
        return {"resource_type": self.resource_type, "resource_id": self.resource_id}


class SigningError(HeraldError):
    """A payload could not be signed, so it must not be sent."""

    code: str = "signing_error"


class ConfigurationError(HeraldError):
    """A setting needed for the requested operation is missing."""

    code: str = "configuration_error"


class AuthenticationError(HeraldError):
    """An inbound webhook arrived without a valid signature."""

    code: str = "authentication_error"
