"""Migration hints derived from applied diff entries."""

from typing import Iterable

from layersync.application.dto.modeling_agent import DiffEntry


def build_migration_suggestions(diff: Iterable[DiffEntry], allow_drop: bool) -> list[str]:
    suggestions: list[str] = []

    for entry in diff:
        if entry.status != "applied":
            continue
        entity = entry.metadata.get("entity")
        attribute = entry.metadata.get("attribute")
        has_column = bool(entity and attribute)

        if entry.action == "add_entity":
            suggestions.append(f"Plan a CREATE TABLE for {entry.target}.")
        elif entry.action == "add_attribute" and has_column:
            suggestions.append(f"Schedule ALTER TABLE {entity} ADD COLUMN {attribute}.")
        elif entry.action == "update_attribute" and has_column:
            suggestions.append(
                f"Review {entity}.{attribute} and apply ALTER COLUMN to align types/constraints."
            )
        elif entry.action == "remove_entity" and allow_drop:
            suggestions.append(
                f"Plan a DROP TABLE for {entry.target} after validating downstream impacts."
            )
        elif entry.action == "remove_attribute" and allow_drop and has_column:
            suggestions.append(
                f"Prepare ALTER TABLE {entity} DROP COLUMN {attribute} with data backup."
            )

    return list(dict.fromkeys(suggestions))
