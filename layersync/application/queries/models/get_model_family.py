"""
GetModelFamily Query - Resolve the conceptual/logical/physical family of a model.

Usage:
    handler: FromDishka[GetModelFamilyHandler]
    family = await handler.execute(GetModelFamilyQuery(model_id=7))
    family.conceptual.id  # root of the family containing model 7
"""

from dataclasses import dataclass

from layersync.application.common.interfaces import Query, QueryHandler
from layersync.application.services.family_resolver import FamilyResolver
from layersync.domain.entities import ModelFamily


# ==================== QUERY ====================


@dataclass
class GetModelFamilyQuery(Query[ModelFamily]):
    model_id: int


# ==================== HANDLER ====================


class GetModelFamilyHandler(QueryHandler[ModelFamily]):
    """Handler for GetModelFamilyQuery."""

    def __init__(self, resolver: FamilyResolver):
        self._resolver = resolver

    async def execute(self, query: GetModelFamilyQuery) -> ModelFamily:
        """Raises EntityNotFoundError for an unknown model id."""
        return await self._resolver.resolve_by_id(query.model_id)
