"""
Shared fixtures: an in-memory storage, the services wired over it, and a
conceptual/logical/physical family to write into.
"""

import pytest

from layersync.application.dto.cascade import (
    AttributeInput,
    CreateObjectRequest,
    ObjectPayload,
)
from layersync.application.services import (
    BatchPopulationService,
    CascadeOrchestrator,
    FamilyLockRegistry,
    FamilyResolver,
    LayerReplicator,
    RelationshipSynchronizer,
)
from layersync.domain.entities import DataModel, ModelFamily
from layersync.domain.value_objects import ModelLayer
from layersync.infrastructure.persistence import InMemoryModelingStorage


@pytest.fixture()
def storage():
    """Fresh in-memory storage per test."""
    return InMemoryModelingStorage()


@pytest.fixture()
def locks():
    return FamilyLockRegistry()


@pytest.fixture()
def resolver(storage):
    return FamilyResolver(storage)


@pytest.fixture()
def synchronizer(storage, resolver):
    return RelationshipSynchronizer(storage, resolver)


@pytest.fixture()
def orchestrator(storage, resolver, synchronizer, locks):
    return CascadeOrchestrator(
        storage,
        resolver,
        LayerReplicator(storage),
        synchronizer,
        locks,
        rollback_on_failure=True,
    )


@pytest.fixture()
def population(storage):
    return BatchPopulationService(storage)


@pytest.fixture()
async def family(storage) -> ModelFamily:
    """Sales conceptual model with a logical child and a physical grandchild."""
    conceptual = await storage.create_data_model(
        DataModel(name="Sales", layer=ModelLayer.CONCEPTUAL, target_system_id=7)
    )
    logical = await storage.create_data_model(conceptual.child(ModelLayer.LOGICAL))
    physical = await storage.create_data_model(
        DataModel(
            name="Sales",
            layer=ModelLayer.PHYSICAL,
            parent_model_id=logical.id,
            target_system_id=9,
        )
    )
    return ModelFamily(
        conceptual=conceptual,
        logical=logical,
        physical=physical,
        members=[conceptual, logical, physical],
    )


def customer_request(model_id: int, **overrides) -> CreateObjectRequest:
    """Customer with `id: Number [pk]` and `email: Text`."""
    fields = dict(
        object=ObjectPayload(name="Customer", model_id=model_id, position={"x": 10, "y": 20}),
        attributes=[
            AttributeInput(name="id", conceptual_type="Number", is_primary_key=True),
            AttributeInput(name="email", conceptual_type="Text"),
        ],
    )
    fields.update(overrides)
    return CreateObjectRequest(**fields)


@pytest.fixture()
def make_customer_request():
    return customer_request
