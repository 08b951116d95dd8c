"""
DataModel Entity - One layer model (conceptual, logical or physical).
"""

from dataclasses import dataclass
from typing import Optional

from layersync.domain.value_objects.model_layer import ModelLayer


@dataclass
class DataModel:
    name: str
    layer: ModelLayer
    parent_model_id: Optional[int] = None
    domain_id: Optional[int] = None
    data_area_id: Optional[int] = None
    target_system_id: Optional[int] = None
    id: Optional[int] = None

    @property
    def is_conceptual(self) -> bool:
        return self.layer is ModelLayer.CONCEPTUAL

    def child(self, layer: ModelLayer) -> "DataModel":
        """Unsaved child model in `layer` inheriting this model's scoping."""
        return DataModel(
            name=self.name,
            layer=layer,
            parent_model_id=self.id,
            domain_id=self.domain_id,
            data_area_id=self.data_area_id,
            target_system_id=self.target_system_id,
        )
