"""Typed failures raised by the set/lookup engines and the warning ledger.

Every error carries a machine-readable ``code`` and a human ``message``;
validation failures also carry ``details``, a list of ``{"field", "message"}``
entries. Mapping to HTTP status codes happens in ``app.main``.
"""
from typing import Optional


class RegistryError(Exception):
    code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[list[dict]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or []

    def to_dict(self) -> dict:
        body = {"success": False, "error": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class NotFound(RegistryError):
    code = "NOT_FOUND"


class DuplicateName(RegistryError):
    code = "DUPLICATE_NAME"


class DuplicateValue(RegistryError):
    code = "DUPLICATE_VALUE"


class ValidationError(RegistryError):
    code = "VALIDATION_ERROR"


class InvalidName(ValidationError):
    code = "INVALID_NAME"


class AlreadyResolved(RegistryError):
    code = "WARNING_ALREADY_RESOLVED"


class InternalError(RegistryError):
    code = "INTERNAL_ERROR"


class AuthenticationError(RegistryError):
    code = "UNAUTHORIZED"


class PermissionDenied(RegistryError):
    code = "INSUFFICIENT_PERMISSION"
