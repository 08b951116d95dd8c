"""
DOMAIN EXCEPTIONS - Business rule violations

These exceptions are raised by domain and application logic and surfaced to
callers of the orchestrator and reconciler entry points.
"""

from layersync.domain.exceptions.entity_not_found import EntityNotFoundError
from layersync.domain.exceptions.validation_error import (
    DomainValidationError,
    DesiredStateSchemaError,
)
from layersync.domain.exceptions.partial_cascade import (
    PartialCascadeError,
    PartialFailureReport,
)

__all__ = [
    "EntityNotFoundError",
    "DomainValidationError",
    "DesiredStateSchemaError",
    "PartialCascadeError",
    "PartialFailureReport",
]
