"""Compact JSON-ready view of a family, sent to the modeling agent."""

from typing import Any

from layersync.application.services.reconciler.context import (
    LayerContext,
    LayerEntity,
    ModelingContext,
)


def _conceptual_relationships(layer: LayerContext, entity: LayerEntity) -> list[dict[str, Any]]:
    return [
        {"target": layer.name_of(row.target_object_id), "type": row.type}
        for row in layer.object_level_relationships()
        if row.source_object_id == entity.object.id
    ]


def _attribute_rows(
    entity: LayerEntity, type_key: str, attribute_limit: int
) -> list[dict[str, Any]]:
    rows = []
    for attribute in entity.attributes[:attribute_limit]:
        if type_key == "logicalType":
            type_value = attribute.logical_type or attribute.conceptual_type
        else:
            type_value = attribute.physical_type or attribute.logical_type
        rows.append(
            {
                "name": attribute.name,
                type_key: type_value,
                "isPrimaryKey": attribute.is_primary_key,
                "isForeignKey": attribute.is_foreign_key,
                "nullable": attribute.nullable,
            }
        )
    return rows


def serialize_context(
    context: ModelingContext, entity_limit: int = 40, attribute_limit: int = 25
) -> dict[str, Any]:
    """At most `entity_limit` entities per layer and `attribute_limit` attributes per entity."""
    result: dict[str, Any] = {}

    if context.conceptual is not None:
        layer = context.conceptual
        result["conceptual"] = {
            "entities": [
                {
                    "name": entity.object.name,
                    "description": entity.object.description,
                    "relationships": _conceptual_relationships(layer, entity),
                }
                for entity in layer.entities[:entity_limit]
            ]
        }

    for layer_context, key, type_key in (
        (context.logical, "logical", "logicalType"),
        (context.physical, "physical", "physicalType"),
    ):
        if layer_context is None:
            continue
        result[key] = {
            "entities": [
                {
                    "name": entity.object.name,
                    "attributes": _attribute_rows(entity, type_key, attribute_limit),
                }
                for entity in layer_context.entities[:entity_limit]
            ]
        }

    return result
