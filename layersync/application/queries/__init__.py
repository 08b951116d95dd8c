"""
QUERIES - Read operations (CQRS)

Queries retrieve data without modifying state. Each query has:
- Query class: Parameters for the read
- Handler class: Executes the read

Subfolders:
- models/ → get_model_family
"""

from layersync.application.queries.models import (
    GetModelFamilyQuery,
    GetModelFamilyHandler,
)

__all__ = [
    "GetModelFamilyQuery",
    "GetModelFamilyHandler",
]
