"""
Tests for per-layer relationship synchronization.

Run with: pytest tests/test_relationship_synchronizer.py -v
"""

import pytest

from layersync.application.dto.cascade import (
    AttributeInput,
    CreateObjectRequest,
    ObjectPayload,
)
from layersync.application.dto.relationships import RelationshipSyncRequest, UpsertOutcome
from layersync.application.services import SyncContext
from layersync.domain.entities import Attribute, DataObject
from layersync.domain.exceptions import EntityNotFoundError
from layersync.domain.value_objects import OBJECT_LEVEL, AttributeLevel, ModelLayer, ObjectLevel


async def _pair(orchestrator, family):
    """Customer(id) and Order(id, customer_id) cascaded into every layer."""
    customer = await orchestrator.create_object_with_cascade(
        CreateObjectRequest(
            object=ObjectPayload(name="Customer", model_id=family.conceptual.id),
            attributes=[AttributeInput(name="id", conceptual_type="Number", is_primary_key=True)],
        )
    )
    order = await orchestrator.create_object_with_cascade(
        CreateObjectRequest(
            object=ObjectPayload(name="Order", model_id=family.conceptual.id),
            attributes=[
                AttributeInput(name="id", conceptual_type="Number", is_primary_key=True),
                AttributeInput(name="customer_id", conceptual_type="Number"),
            ],
        )
    )
    return customer, order


class TestGranularity:
    """Conceptual rows are object-level, logical/physical rows attribute-level."""

    @pytest.mark.asyncio
    async def test_object_level_edit_only_hits_conceptual(self, synchronizer, orchestrator, family):
        """Object-level requests skip logical and physical."""
        customer, order = await _pair(orchestrator, family)
        synced = await synchronizer.synchronize(
            RelationshipSyncRequest(customer.primary_object.id, order.primary_object.id),
            family.conceptual,
        )
        assert list(synced) == [family.conceptual.id]
        assert isinstance(synced[family.conceptual.id].level, ObjectLevel)

    @pytest.mark.asyncio
    async def test_attribute_level_edit_from_logical_layer(
        self, synchronizer, orchestrator, storage, family
    ):
        """An edit made with logical ids lands in all three layers."""
        customer, order = await _pair(orchestrator, family)
        logical_customer = customer.layers[ModelLayer.LOGICAL]
        logical_order = order.layers[ModelLayer.LOGICAL]
        level = AttributeLevel(logical_customer.attributes[0].id, logical_order.attributes[1].id)

        synced = await synchronizer.synchronize(
            RelationshipSyncRequest(
                logical_customer.object.id, logical_order.object.id, type="1:N", level=level
            ),
            family.logical,
        )

        assert set(synced) == {family.conceptual.id, family.logical.id, family.physical.id}
        assert synced[family.logical.id].level == level
        assert synced[family.conceptual.id].level == OBJECT_LEVEL
        physical_order = order.layers[ModelLayer.PHYSICAL]
        assert synced[family.physical.id].target_attribute_id == physical_order.attributes[1].id

    @pytest.mark.asyncio
    async def test_unresolvable_attribute_skips_layer(self, synchronizer, storage, family):
        """Attributes that cannot be resolved in a layer produce no row there."""
        source = await storage.create_data_object(DataObject(name="A", model_id=family.logical.id))
        target = await storage.create_data_object(DataObject(name="B", model_id=family.logical.id))
        source_attribute = await storage.create_attribute(Attribute(name="a_id", object_id=source.id))
        target_attribute = await storage.create_attribute(Attribute(name="b_id", object_id=target.id))
        await storage.delete_attribute(target_attribute.id)

        synced = await synchronizer.synchronize(
            RelationshipSyncRequest(
                source.id,
                target.id,
                level=AttributeLevel(source_attribute.id, target_attribute.id),
            ),
            family.logical,
        )
        assert synced == {}
        assert await storage.get_relationships_by_model(family.logical.id) == []

    @pytest.mark.asyncio
    async def test_missing_layer_attribute_is_created(self, synchronizer, storage, family):
        """A global attribute absent from the layer object is copied with its origin."""
        conceptual_a = await storage.create_data_object(DataObject(name="A", model_id=family.conceptual.id))
        conceptual_b = await storage.create_data_object(DataObject(name="B", model_id=family.conceptual.id))
        key = await storage.create_attribute(Attribute(name="id", object_id=conceptual_a.id, is_primary_key=True, nullable=False))
        ref = await storage.create_attribute(Attribute(name="a_id", object_id=conceptual_b.id))
        logical_a = await storage.create_data_object(DataObject(name="a", model_id=family.logical.id))
        await storage.create_data_object(DataObject(name="B", model_id=family.logical.id))

        context = SyncContext()
        synced = await synchronizer.synchronize(
            RelationshipSyncRequest(conceptual_a.id, conceptual_b.id, level=AttributeLevel(key.id, ref.id)),
            family.conceptual,
            context,
        )

        assert family.logical.id in synced
        [copied] = await storage.get_attributes_by_object(logical_a.id)
        assert copied.origin_attribute_id == key.id
        assert copied.nullable is False
        assert any(entry.kind == "attribute" for entry in context.journal)

    @pytest.mark.asyncio
    async def test_unknown_object_raises(self, synchronizer, family):
        """Unknown source object ids raise EntityNotFoundError."""
        with pytest.raises(EntityNotFoundError):
            await synchronizer.synchronize(RelationshipSyncRequest(1, 2), family.conceptual)


class TestUpsert:
    """Repeated synchronization never duplicates rows."""

    @pytest.mark.asyncio
    async def test_upsert_is_idempotent(self, synchronizer, storage, family):
        """Same edge twice: created, then unchanged; a changed field updates."""
        a = await storage.create_data_object(DataObject(name="A", model_id=family.conceptual.id))
        b = await storage.create_data_object(DataObject(name="B", model_id=family.conceptual.id))

        first = await synchronizer.upsert_layer_relationship(family.conceptual, a.id, b.id, OBJECT_LEVEL)
        second = await synchronizer.upsert_layer_relationship(family.conceptual, a.id, b.id, OBJECT_LEVEL)
        third = await synchronizer.upsert_layer_relationship(
            family.conceptual, a.id, b.id, OBJECT_LEVEL, relationship_type="1:1"
        )

        assert first.outcome is UpsertOutcome.CREATED
        assert second.outcome is UpsertOutcome.UNCHANGED
        assert third.outcome is UpsertOutcome.UPDATED
        [row] = await storage.get_relationships_by_model(family.conceptual.id)
        assert row.type == "1:1"

    @pytest.mark.asyncio
    async def test_remove_deletes_matches_per_layer(self, synchronizer, orchestrator, storage, family):
        """remove() drops the row in each layer that holds it."""
        customer, order = await _pair(orchestrator, family)
        request = RelationshipSyncRequest(customer.primary_object.id, order.primary_object.id)
        await synchronizer.synchronize(request, family.conceptual)

        removed = await synchronizer.remove(request, family.conceptual)

        assert removed == {family.conceptual.id: 1}
        assert await storage.get_relationships_by_model(family.conceptual.id) == []


class TestLocateLayerObject:
    """Layer objects are found by provenance, then by normalized name."""

    @pytest.mark.asyncio
    async def test_name_fallback_is_case_insensitive(self, synchronizer, storage, family):
        """Without provenance, ' customer ' matches 'Customer'."""
        conceptual = await storage.create_data_object(DataObject(name="Customer", model_id=family.conceptual.id))
        physical = await storage.create_data_object(DataObject(name=" customer ", model_id=family.physical.id))

        located = await synchronizer.locate_layer_object(family.physical, conceptual, SyncContext())
        assert located.id == physical.id

    @pytest.mark.asyncio
    async def test_provenance_beats_name(self, synchronizer, orchestrator, storage, family):
        """A renamed replica is still found through its provenance."""
        customer, _ = await _pair(orchestrator, family)
        replica = customer.layers[ModelLayer.PHYSICAL].object
        await storage.update_data_object(replica.id, {"name": "dim_customer"})

        located = await synchronizer.locate_layer_object(
            family.physical, customer.primary_object, SyncContext()
        )
        assert located.id == replica.id
