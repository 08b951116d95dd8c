"""
ModelLayer Value Object - The three layers of a model family.
"""

from enum import Enum


class ModelLayer(str, Enum):
    CONCEPTUAL = "conceptual"
    LOGICAL = "logical"
    PHYSICAL = "physical"

    @classmethod
    def ordered(cls) -> list["ModelLayer"]:
        """Layers in propagation order."""
        return [cls.CONCEPTUAL, cls.LOGICAL, cls.PHYSICAL]

    @property
    def allows_object_level_relationships(self) -> bool:
        return self is ModelLayer.CONCEPTUAL

    def __str__(self) -> str:
        return self.value
