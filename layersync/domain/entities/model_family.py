"""
ModelFamily - A conceptual root plus the logical/physical models that share it.
"""

from dataclasses import dataclass, field
from typing import Optional

from layersync.domain.entities.data_model import DataModel
from layersync.domain.value_objects.model_layer import ModelLayer


@dataclass
class ModelFamily:
    conceptual: DataModel
    logical: Optional[DataModel] = None
    physical: Optional[DataModel] = None
    members: list[DataModel] = field(default_factory=list)

    @property
    def root_id(self) -> int:
        return self.conceptual.id

    @property
    def is_complete(self) -> bool:
        return (
            self.conceptual.is_conceptual
            and self.logical is not None
            and self.physical is not None
        )

    def member_for(self, layer: ModelLayer) -> Optional[DataModel]:
        if layer is ModelLayer.CONCEPTUAL:
            return self.conceptual if self.conceptual.is_conceptual else None
        if layer is ModelLayer.LOGICAL:
            return self.logical
        return self.physical

    def ordered_members(self) -> list[DataModel]:
        """One model per layer, conceptual first."""
        ordered = []
        for layer in ModelLayer.ordered():
            member = self.member_for(layer)
            if member is not None:
                ordered.append(member)
        return ordered
