"""Model family DTOs."""

from dataclasses import dataclass, field

from layersync.domain.entities import DataObject, ModelFamily
from layersync.domain.value_objects import ModelLayer


@dataclass
class PopulationResult:
    objects_by_layer: dict[ModelLayer, list[DataObject]] = field(default_factory=dict)
    attributes_created: int = 0
    relationships_created: int = 0
    canonical_relationships_created: int = 0

    @property
    def objects_created(self) -> int:
        return sum(len(objects) for objects in self.objects_by_layer.values())


@dataclass
class CreateModelFamilyResult:
    family: ModelFamily
    population: PopulationResult = field(default_factory=PopulationResult)
