"""
Advisory checks run after reconciliation.

None of these raise; every finding becomes an Issue:
- primary key that allows NULL (error)
- foreign key no attribute-level relationship references (warning)
- cycles among conceptual object-level relationships (warning)
"""

from typing import Iterable, Optional

from layersync.application.dto.desired_state import Issue
from layersync.application.services.reconciler.context import LayerContext, ModelingContext


def detect_relationship_cycles(layer: LayerContext) -> list[list[str]]:
    """Every distinct cycle as a closed path of entity names, e.g. [A, B, C, A]."""
    adjacency: dict[int, list[int]] = {}
    for row in layer.object_level_relationships():
        adjacency.setdefault(row.source_object_id, []).append(row.target_object_id)

    visited: set[int] = set()
    on_stack: set[int] = set()
    path: list[int] = []
    cycles: list[list[str]] = []
    seen: set[str] = set()

    def record(neighbor: int) -> None:
        start = path.index(neighbor)
        names = [layer.name_of(object_id) for object_id in path[start:] + [neighbor]]
        key = "->".join(names)
        if key not in seen:
            seen.add(key)
            cycles.append(names)

    # Explicit stack of (node, pending neighbors); long chains must not hit the recursion limit
    for root in list(adjacency):
        if root in visited:
            continue
        visited.add(root)
        on_stack.add(root)
        path.append(root)
        stack = [(root, iter(adjacency.get(root, [])))]
        while stack:
            node, neighbors = stack[-1]
            neighbor = next(neighbors, None)
            if neighbor is None:
                stack.pop()
                on_stack.discard(node)
                path.pop()
            elif neighbor not in visited:
                visited.add(neighbor)
                on_stack.add(neighbor)
                path.append(neighbor)
                stack.append((neighbor, iter(adjacency.get(neighbor, []))))
            elif neighbor in on_stack:
                record(neighbor)
    return cycles


def _referenced_attribute_ids(layer: LayerContext) -> set[int]:
    ids: set[int] = set()
    for row in layer.relationships:
        if row.level.is_attribute_level:
            ids.add(row.source_attribute_id)
            ids.add(row.target_attribute_id)
    return ids


def _evaluate_layer(layer: Optional[LayerContext], check_foreign_keys: bool) -> list[Issue]:
    if layer is None:
        return []
    referenced = _referenced_attribute_ids(layer) if check_foreign_keys else set()
    issues = []
    for entity in layer.entities:
        name = entity.object.name
        for attribute in entity.attributes:
            if attribute.violates_key_nullability:
                issues.append(
                    Issue(
                        severity="error",
                        message=f"{name}.{attribute.name} is a primary key but allows NULL values",
                        entity=name,
                    )
                )
            if check_foreign_keys and attribute.is_foreign_key and attribute.id not in referenced:
                issues.append(
                    Issue(
                        severity="warning",
                        message=f"{name}.{attribute.name} is marked as foreign key but no relationship references it",
                        entity=name,
                    )
                )
    return issues


def detect_issues(context: ModelingContext) -> list[Issue]:
    issues = _evaluate_layer(context.conceptual, check_foreign_keys=False)
    issues.extend(_evaluate_layer(context.logical, check_foreign_keys=True))
    issues.extend(_evaluate_layer(context.physical, check_foreign_keys=True))

    if context.conceptual is not None:
        for cycle in detect_relationship_cycles(context.conceptual):
            issues.append(
                Issue(
                    severity="warning",
                    message=f"Relationship cycle detected: {' -> '.join(cycle)}",
                    entity=cycle[0],
                )
            )
    return issues


def merge_issues(reported: Iterable[Issue], computed: Iterable[Issue]) -> list[Issue]:
    """First occurrence wins per (severity, entity, message)."""
    merged: dict[str, Issue] = {}
    for issue in [*reported, *computed]:
        key = f"{issue.severity}:{issue.entity or ''}:{issue.message}"
        merged.setdefault(key, issue)
    return list(merged.values())


def merge_suggestions(primary: Iterable[str], secondary: Iterable[str]) -> list[str]:
    merged: dict[str, None] = {}
    for suggestion in [*primary, *secondary]:
        trimmed = suggestion.strip()
        if trimmed:
            merged.setdefault(trimmed, None)
    return list(merged)
