"""
Type inference between layers for agent-supplied attributes.

Logical types are generic SQL families (INTEGER, DECIMAL, VARCHAR, ...);
physical types are concrete column types (INT, DECIMAL(18,2), VARCHAR(255)).
"""

from typing import Optional

from layersync.application.dto.desired_state import DesiredAttribute
from layersync.domain.value_objects import ModelLayer

_CONCEPTUAL_TO_LOGICAL = {
    "number": "INTEGER",
    "integer": "INTEGER",
    "int": "INTEGER",
    "decimal": "DECIMAL",
    "currency": "DECIMAL",
    "percentage": "DECIMAL",
    "date": "DATE",
    "datetime": "TIMESTAMP",
    "boolean": "BOOLEAN",
    "uuid": "UUID",
}

_LOGICAL_TO_PHYSICAL = {
    "INTEGER": "INT",
    "INT": "INT",
    "BIGINT": "BIGINT",
    "DECIMAL": "DECIMAL(18,2)",
    "NUMERIC": "DECIMAL(18,2)",
    "DATE": "DATE",
    "TIMESTAMP": "TIMESTAMP",
    "DATETIME": "TIMESTAMP",
    "BOOLEAN": "BOOLEAN",
    "UUID": "UUID",
}

# Checked in order; "timestamp" must win over "date"
_PHYSICAL_FRAGMENTS = (
    (("char", "text"), "VARCHAR"),
    (("int",), "INTEGER"),
    (("decimal", "numeric"), "DECIMAL"),
    (("timestamp",), "TIMESTAMP"),
    (("date",), "DATE"),
    (("bool",), "BOOLEAN"),
)


def map_conceptual_to_logical(conceptual_type: str) -> str:
    return _CONCEPTUAL_TO_LOGICAL.get(conceptual_type.strip().lower(), "VARCHAR")


def map_physical_to_logical(physical_type: str) -> str:
    normalized = physical_type.strip().lower()
    for fragments, logical_type in _PHYSICAL_FRAGMENTS:
        if any(fragment in normalized for fragment in fragments):
            return logical_type
    return "VARCHAR"


def map_logical_to_physical(logical_type: str) -> str:
    return _LOGICAL_TO_PHYSICAL.get(logical_type.strip().upper(), "VARCHAR(255)")


def infer_logical_type(attribute: DesiredAttribute, layer: ModelLayer) -> Optional[str]:
    if attribute.logical_type:
        return attribute.logical_type
    if attribute.conceptual_type:
        return map_conceptual_to_logical(attribute.conceptual_type)
    if layer is ModelLayer.PHYSICAL and attribute.physical_type:
        return map_physical_to_logical(attribute.physical_type)
    return None if layer is ModelLayer.CONCEPTUAL else "VARCHAR"


def infer_physical_type(
    attribute: DesiredAttribute, logical_type: Optional[str]
) -> Optional[str]:
    if attribute.physical_type:
        return attribute.physical_type
    if not logical_type:
        return None
    return map_logical_to_physical(logical_type)
