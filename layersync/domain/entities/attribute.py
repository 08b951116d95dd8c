"""
Attribute Entity - A column/property owned by exactly one DataObject.

Invariant: a primary key is never nullable.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Attribute:
    name: str
    object_id: int
    conceptual_type: Optional[str] = None
    logical_type: Optional[str] = None
    physical_type: Optional[str] = None
    data_type: Optional[str] = None
    length: Optional[int] = None
    precision: Optional[int] = None
    scale: Optional[int] = None
    nullable: bool = True
    is_primary_key: bool = False
    is_foreign_key: bool = False
    order_index: int = 0
    description: Optional[str] = None
    origin_attribute_id: Optional[int] = None
    id: Optional[int] = None

    @property
    def origin_identity(self) -> Optional[int]:
        if self.origin_attribute_id is not None:
            return self.origin_attribute_id
        return self.id

    @property
    def violates_key_nullability(self) -> bool:
        return self.is_primary_key and self.nullable

    def enforce_key_constraints(self) -> "Attribute":
        if self.is_primary_key:
            self.nullable = False
        return self
