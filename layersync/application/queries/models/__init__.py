"""Model queries."""

from layersync.application.queries.models.get_model_family import (
    GetModelFamilyQuery,
    GetModelFamilyHandler,
)

__all__ = [
    "GetModelFamilyQuery",
    "GetModelFamilyHandler",
]
