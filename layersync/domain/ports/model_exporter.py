"""
Model Exporter Port - Renders a stored physical model as DDL.

No implementation ships with layersync. When one is wired into the
reconciler, its output replaces the generated `sql` entry for the
requested target database.
"""

from abc import ABC, abstractmethod

from layersync.domain.entities import Attribute, DataModel, DataObject, LayerRelationship


class ModelExporter(ABC):
    @abstractmethod
    async def export_ddl(
        self,
        model: DataModel,
        objects: list[DataObject],
        attributes: list[Attribute],
        relationships: list[LayerRelationship],
        target_database: str,
    ) -> str:
        """DDL with primary keys, foreign keys and descriptions for `target_database`."""
        ...
