"""
core/exceptions.py
------------------
Typed errors raised by the messaging core.

Services raise these; they never build HTTP responses themselves. main.py
registers a single handler for SlimeTalksError that renders the error
envelope using the status_code carried by each subclass.

Tenant mismatch is reported as NotFoundError, never as a 403, so the
existence of another tenant's data cannot be observed.
"""

from typing import Any, Dict, List, Optional


class SlimeTalksError(Exception):
    """Base exception for all messaging-core errors."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        errors: Optional[Dict[str, List[str]]] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.errors = errors or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.errors:
            body["errors"] = self.errors
        return {"error": body}


class ValidationError(SlimeTalksError):
    def __init__(
        self,
        message: str = "The given data was invalid",
        errors: Optional[Dict[str, List[str]]] = None,
    ) -> None:
        super().__init__(
            code="VALIDATION_ERROR", message=message, status_code=422, errors=errors
        )

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message=message, errors={field: [message]})


class NotFoundError(SlimeTalksError):
    def __init__(self, message: str = "Resource not found") -> None:
        super().__init__(code="NOT_FOUND", message=message, status_code=404)


class ConflictError(SlimeTalksError):
    def __init__(self, message: str = "Resource already exists") -> None:
        super().__init__(code="CONFLICT", message=message, status_code=409)


class AuthError(SlimeTalksError):
    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(code="UNAUTHORIZED", message=message, status_code=401)
