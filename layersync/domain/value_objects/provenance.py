"""
Provenance Value Object - Link from a replicated object back to its conceptual origin.
"""

from dataclasses import dataclass
from typing import Any, Optional

from layersync.domain.value_objects.model_layer import ModelLayer

ORIGIN_OBJECT_KEY = "origin_conceptual_object_id"
ORIGIN_MODEL_KEY = "origin_conceptual_model_id"
LAYER_KEY = "layer"
PROVENANCE_KEYS = (ORIGIN_OBJECT_KEY, ORIGIN_MODEL_KEY, LAYER_KEY)


@dataclass(frozen=True)
class Provenance:
    origin_object_id: int
    origin_model_id: int
    layer: ModelLayer

    def __post_init__(self):
        if self.origin_object_id is None or self.origin_object_id <= 0:
            raise ValueError(f"Invalid origin object id: {self.origin_object_id}")
        if self.origin_model_id is None or self.origin_model_id <= 0:
            raise ValueError(f"Invalid origin model id: {self.origin_model_id}")

    def to_metadata(self) -> dict[str, Any]:
        return {
            ORIGIN_OBJECT_KEY: self.origin_object_id,
            ORIGIN_MODEL_KEY: self.origin_model_id,
            LAYER_KEY: self.layer.value,
        }

    @classmethod
    def from_metadata(cls, metadata: Optional[dict[str, Any]]) -> Optional["Provenance"]:
        """Rebuild provenance from stored metadata. None if the keys are absent."""
        if not metadata:
            return None
        object_id = metadata.get(ORIGIN_OBJECT_KEY)
        model_id = metadata.get(ORIGIN_MODEL_KEY)
        layer = metadata.get(LAYER_KEY)
        if object_id is None or model_id is None or layer is None:
            return None
        return cls(int(object_id), int(model_id), ModelLayer(layer))
