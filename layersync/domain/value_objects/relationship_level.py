"""
RelationshipLevel Value Object - Object-level or attribute-level relationship.

A relationship is attribute-level iff both a source and a target attribute
are known; `determine_relationship_level` is the only place that decides it.
"""

from dataclasses import dataclass
from typing import ClassVar, Optional, Union


@dataclass(frozen=True)
class ObjectLevel:
    kind: ClassVar[str] = "object"

    @property
    def source_attribute_id(self) -> Optional[int]:
        return None

    @property
    def target_attribute_id(self) -> Optional[int]:
        return None

    @property
    def is_attribute_level(self) -> bool:
        return False


@dataclass(frozen=True)
class AttributeLevel:
    source_attribute_id: int
    target_attribute_id: int
    kind: ClassVar[str] = "attribute"

    def __post_init__(self):
        if self.source_attribute_id is None or self.target_attribute_id is None:
            raise ValueError("Attribute-level relationships need both attribute ids")

    @property
    def is_attribute_level(self) -> bool:
        return True


RelationshipLevel = Union[ObjectLevel, AttributeLevel]

OBJECT_LEVEL = ObjectLevel()


def determine_relationship_level(
    source_attribute_id: Optional[int], target_attribute_id: Optional[int]
) -> RelationshipLevel:
    if source_attribute_id is not None and target_attribute_id is not None:
        return AttributeLevel(source_attribute_id, target_attribute_id)
    return OBJECT_LEVEL
