"""
DomainValidationError - Raised when a request violates a business rule.
DesiredStateSchemaError - Raised when generative output fails schema validation.
"""

from typing import Any, Optional


class DomainValidationError(Exception):
    """Exception raised for domain validation errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class DesiredStateSchemaError(DomainValidationError):
    """The structured response did not match the desired-state schema. Aborts the run."""

    def __init__(self, message: str, details: Optional[list[dict[str, Any]]] = None):
        super().__init__(message)
        self.details = details or []
