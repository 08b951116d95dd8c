"""
DataObject Entity - An entity instance scoped to a single layer model.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from layersync.domain.value_objects.provenance import Provenance


@dataclass
class DataObject:
    name: str
    model_id: int
    description: Optional[str] = None
    domain_id: Optional[int] = None
    data_area_id: Optional[int] = None
    target_system_id: Optional[int] = None
    position: Optional[dict[str, float]] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    provenance: Optional[Provenance] = None
    is_new: bool = True
    id: Optional[int] = None

    @property
    def origin_identity(self) -> Optional[int]:
        """Id of the conceptual object this one represents (its own id when not replicated)."""
        if self.provenance is not None:
            return self.provenance.origin_object_id
        return self.id
