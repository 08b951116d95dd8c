"""
ModelObject Entity - Placement of a DataObject inside a model (canvas row).
"""

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class ModelObject:
    model_id: int
    object_id: int
    position: Optional[dict[str, float]] = None
    target_system_id: Optional[int] = None
    is_visible: bool = True
    metadata: dict[str, Any] = field(default_factory=dict)
    layer_specific_config: dict[str, Any] = field(default_factory=dict)
    id: Optional[int] = None
