"""Error taxonomy shared by the HTTP handlers and the generated client."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple


@dataclass(frozen=True)
class FieldViolation:
    """A single field that failed validation."""

    field: str
    reason: str

    def __str__(self) -> str:
        return f"{self.field}: {self.reason}"


class ApiProblem(Exception):
    """Base class for failures that map onto an HTTP error response."""

    status_code = 500
    default_code: Optional[str] = None

    def __init__(self, message: str, *, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code if code is not None else self.default_code

    def to_payload(self) -> Dict[str, str]:
        payload = {"message": self.message}
        if self.code:
            payload["code"] = self.code
        return payload


class BadRequestError(ApiProblem):
    status_code = 400
    default_code = "bad_request"


class SchemaValidationError(BadRequestError):
    """Raised when a value does not conform to its schema.

    Every violation found in one validation pass is reported together.
    """

    default_code = "validation_error"

    def __init__(self, violations: Iterable[FieldViolation], *, prefix: str = "Invalid request") -> None:
        self.violations: Tuple[FieldViolation, ...] = tuple(violations)
        details = "; ".join(str(item) for item in self.violations)
        message = f"{prefix}: {details}" if details else prefix
        super().__init__(message)


class NotFoundError(ApiProblem):
    status_code = 404
    default_code = "not_found"

    def __init__(self, resource: str) -> None:
        self.resource = resource
        super().__init__(f"{resource} not found")


class UnclassifiedServerError(ApiProblem):
    """Generic failure whose details are never exposed to callers."""

    status_code = 500
    default_code = "internal_error"

    def __init__(self) -> None:
        super().__init__("Internal server error")


class TransportError(Exception):
    """The client could not complete the HTTP exchange."""


class ResponseContractError(TransportError):
    """The server answered with a body that does not match the contract."""

    def __init__(self, message: str, *, status_code: int, body: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


__all__ = [
    "ApiProblem",
    "BadRequestError",
    "FieldViolation",
    "NotFoundError",
    "ResponseContractError",
    "SchemaValidationError",
    "TransportError",
    "UnclassifiedServerError",
]
