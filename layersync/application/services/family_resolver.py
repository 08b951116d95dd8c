"""
Model Family Resolver.

Given any layer model, finds its conceptual root and the logical/physical
models that share it. A model with no conceptual ancestor resolves to a
degenerate family with itself as `conceptual`; callers needing a complete
family must check `logical`/`physical`.
"""

import logging
from collections import deque
from typing import Iterable, Optional

from layersync.application.services.sync_context import SyncContext
from layersync.domain.entities import DataModel, ModelFamily
from layersync.domain.exceptions import EntityNotFoundError
from layersync.domain.ports.repositories import ModelingStorage
from layersync.domain.value_objects import ModelLayer

logger = logging.getLogger(__name__)


def find_conceptual_root(
    model: DataModel, models_by_id: dict[int, DataModel]
) -> DataModel:
    """Walk parent links up to a conceptual model. Cycles stop the walk."""
    current = model
    visited: set[int] = set()

    while not current.is_conceptual and current.parent_model_id:
        parent_id = current.parent_model_id
        if parent_id in visited:
            logger.warning(f"[FamilyResolver] Parent cycle at model {parent_id}")
            break
        visited.add(parent_id)
        parent = models_by_id.get(parent_id)
        if parent is None:
            break
        current = parent

    return current if current.is_conceptual else model


def resolve_family_from_catalog(
    model: DataModel, models: Iterable[DataModel]
) -> ModelFamily:
    models = list(models)
    models_by_id = {entry.id: entry for entry in models}
    root = find_conceptual_root(model, models_by_id)

    members = [
        candidate
        for candidate in models
        if find_conceptual_root(candidate, models_by_id).id == root.id
    ]
    if not any(member.id == model.id for member in members):
        members.append(model)

    logical = next((m for m in members if m.layer is ModelLayer.LOGICAL), None)
    physical = next((m for m in members if m.layer is ModelLayer.PHYSICAL), None)

    # The caller's own model wins its slot
    if model.layer is ModelLayer.LOGICAL:
        logical = model
    if model.layer is ModelLayer.PHYSICAL:
        physical = model

    return ModelFamily(conceptual=root, logical=logical, physical=physical, members=members)


def find_descendant_layer(
    ancestor: Optional[DataModel], layer: ModelLayer, models: Iterable[DataModel]
) -> Optional[DataModel]:
    """Breadth-first search below `ancestor` for the first model in `layer`."""
    if ancestor is None:
        return None

    children_by_parent: dict[int, list[DataModel]] = {}
    for candidate in models:
        if candidate.parent_model_id is not None:
            children_by_parent.setdefault(candidate.parent_model_id, []).append(candidate)

    visited: set[int] = set()
    queue = deque(children_by_parent.get(ancestor.id, []))
    while queue:
        candidate = queue.popleft()
        if candidate.id in visited:
            continue
        visited.add(candidate.id)
        if candidate.layer is layer:
            return candidate
        queue.extend(children_by_parent.get(candidate.id, []))
    return None


class FamilyResolver:
    def __init__(self, storage: ModelingStorage):
        self._storage = storage

    async def resolve(
        self, model: DataModel, context: Optional[SyncContext] = None
    ) -> ModelFamily:
        models = (
            await context.catalog(self._storage)
            if context is not None
            else await self._storage.get_data_models()
        )
        family = resolve_family_from_catalog(model, models)
        if not family.conceptual.is_conceptual:
            logger.info(
                f"[FamilyResolver] Model {model.id} has no conceptual root, using degenerate family"
            )
        return family

    async def resolve_by_id(
        self, model_id: int, context: Optional[SyncContext] = None
    ) -> ModelFamily:
        model = await self._storage.get_data_model(model_id)
        if model is None:
            raise EntityNotFoundError(f"Model with id {model_id} not found")
        return await self.resolve(model, context)

    async def find_descendant(
        self,
        ancestor: Optional[DataModel],
        layer: ModelLayer,
        context: Optional[SyncContext] = None,
    ) -> Optional[DataModel]:
        models = (
            await context.catalog(self._storage)
            if context is not None
            else await self._storage.get_data_models()
        )
        return find_descendant_layer(ancestor, layer, models)
