"""
Tests for the cascade orchestrator: create with cascade, delete, rollback.

Run with: pytest tests/test_cascade_orchestrator.py -v
"""

import asyncio

import pytest

from layersync.application.commands.relationships import (
    CreateRelationshipCommand,
    CreateRelationshipHandler,
)
from layersync.application.dto.cascade import (
    AttributeInput,
    LayerConfigs,
    ModelObjectConfig,
    ObjectPayload,
    CreateObjectRequest,
    RelationshipInput,
)
from layersync.application.services import (
    CascadeOrchestrator,
    FamilyResolver,
    LayerReplicator,
    RelationshipSynchronizer,
)
from layersync.domain.entities import DataModel
from layersync.domain.exceptions import EntityNotFoundError, PartialCascadeError
from layersync.domain.value_objects import AttributeLevel, ModelLayer, ObjectLevel
from layersync.infrastructure.persistence import InMemoryModelingStorage


class FailingModelObjectStorage(InMemoryModelingStorage):
    """Refuses model-object rows in one model."""

    def __init__(self):
        super().__init__()
        self.fail_model_id = None

    async def create_data_model_object(self, model_object):
        if model_object.model_id == self.fail_model_id:
            raise RuntimeError("placement rejected")
        return await super().create_data_model_object(model_object)


class GatedObjectStorage(InMemoryModelingStorage):
    """Holds the insert of object "First" until the gate opens and logs every insert."""

    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()
        self.entered = asyncio.Event()
        self.events = []

    async def create_data_object(self, data_object):
        self.events.append(f"start:{data_object.name}")
        if data_object.name == "First" and not self.gate.is_set():
            self.entered.set()
            await self.gate.wait()
        created = await super().create_data_object(data_object)
        self.events.append(f"end:{data_object.name}")
        return created


class FailingObjectStorage(InMemoryModelingStorage):
    """Refuses every object insert."""

    async def create_data_object(self, data_object):
        raise RuntimeError("object insert rejected")


def _orchestrator(storage, locks, rollback_on_failure=True):
    resolver = FamilyResolver(storage)
    return CascadeOrchestrator(
        storage,
        resolver,
        LayerReplicator(storage),
        RelationshipSynchronizer(storage, resolver),
        locks,
        rollback_on_failure=rollback_on_failure,
    )


async def _seed_family(storage):
    conceptual = await storage.create_data_model(DataModel(name="Sales", layer=ModelLayer.CONCEPTUAL))
    logical = await storage.create_data_model(conceptual.child(ModelLayer.LOGICAL))
    physical = await storage.create_data_model(logical.child(ModelLayer.PHYSICAL))
    return conceptual, logical, physical


class TestCreateWithCascade:
    """Creating in the conceptual layer replicates into logical and physical."""

    @pytest.mark.asyncio
    async def test_customer_cascades_to_all_layers(self, orchestrator, family, make_customer_request):
        """Customer gets two attributes per layer and a non-nullable primary key."""
        result = await orchestrator.create_object_with_cascade(
            make_customer_request(family.conceptual.id)
        )

        assert result.cascade_performed
        assert set(result.layers) == {ModelLayer.CONCEPTUAL, ModelLayer.LOGICAL, ModelLayer.PHYSICAL}
        for layer, created in result.layers.items():
            assert created.object.name == "Customer"
            assert len(created.attributes) == 2
            key = next(a for a in created.attributes if a.name == "id")
            assert key.is_primary_key
            assert key.nullable is False

    @pytest.mark.asyncio
    async def test_replicas_carry_provenance(self, orchestrator, family, make_customer_request):
        """Logical and physical copies point back at the conceptual object."""
        result = await orchestrator.create_object_with_cascade(
            make_customer_request(family.conceptual.id)
        )
        primary = result.primary_object

        for layer in (ModelLayer.LOGICAL, ModelLayer.PHYSICAL):
            replica = result.layers[layer].object
            assert replica.provenance.origin_object_id == primary.id
            assert replica.provenance.origin_model_id == family.conceptual.id
            assert replica.provenance.layer is layer
            assert replica.metadata["origin_conceptual_object_id"] == primary.id
            assert replica.origin_identity == primary.id

    @pytest.mark.asyncio
    async def test_replica_attributes_point_at_conceptual_attributes(
        self, orchestrator, family, make_customer_request
    ):
        """Replicated attributes keep the conceptual attribute as origin."""
        result = await orchestrator.create_object_with_cascade(
            make_customer_request(family.conceptual.id)
        )
        conceptual_ids = {a.name: a.id for a in result.layers[ModelLayer.CONCEPTUAL].attributes}
        for attribute in result.layers[ModelLayer.PHYSICAL].attributes:
            assert attribute.origin_attribute_id == conceptual_ids[attribute.name]

    @pytest.mark.asyncio
    async def test_target_system_and_layer_config(self, orchestrator, family, make_customer_request):
        """Physical placement uses its model's target system and the physical override."""
        request = make_customer_request(
            family.conceptual.id,
            layer_configs=LayerConfigs(physical=ModelObjectConfig(position={"x": 1.0, "y": 2.0})),
        )
        result = await orchestrator.create_object_with_cascade(request)

        physical = result.layers[ModelLayer.PHYSICAL]
        assert physical.object.target_system_id == 9
        assert physical.model_object.position == {"x": 1.0, "y": 2.0}
        assert physical.model_object.layer_specific_config["layer"] == "physical"
        assert result.layers[ModelLayer.LOGICAL].model_object.position == {"x": 10, "y": 20}

    @pytest.mark.asyncio
    async def test_no_cascade_from_logical_home(self, orchestrator, family, make_customer_request):
        """Objects created outside the conceptual layer stay in their home model."""
        result = await orchestrator.create_object_with_cascade(
            make_customer_request(family.logical.id)
        )
        assert not result.cascade_performed
        assert list(result.layers) == [ModelLayer.LOGICAL]

    @pytest.mark.asyncio
    async def test_cascade_flag_off(self, orchestrator, family, make_customer_request):
        """cascade=False writes only the conceptual object."""
        result = await orchestrator.create_object_with_cascade(
            make_customer_request(family.conceptual.id, cascade=False)
        )
        assert not result.cascade_performed
        assert await orchestrator._storage.get_data_objects_by_model(family.logical.id) == []

    @pytest.mark.asyncio
    async def test_unknown_home_model(self, orchestrator, make_customer_request):
        """A missing home model raises EntityNotFoundError."""
        with pytest.raises(EntityNotFoundError):
            await orchestrator.create_object_with_cascade(make_customer_request(404))


class TestCascadeRelationships:
    """Relationships supplied with a new object."""

    @pytest.mark.asyncio
    async def test_attribute_level_relationship_reaches_every_layer(
        self, orchestrator, storage, family
    ):
        """Conceptual row is object-level; logical and physical rows use layer attributes."""
        order = await orchestrator.create_object_with_cascade(
            CreateObjectRequest(
                object=ObjectPayload(name="Order", model_id=family.conceptual.id),
                attributes=[
                    AttributeInput(name="id", conceptual_type="Number", is_primary_key=True),
                    AttributeInput(name="customer_id", conceptual_type="Number"),
                ],
            )
        )
        customer = await orchestrator.create_object_with_cascade(
            CreateObjectRequest(
                object=ObjectPayload(name="Customer", model_id=family.conceptual.id),
                attributes=[AttributeInput(name="id", conceptual_type="Number", is_primary_key=True)],
                relationships=[
                    RelationshipInput(
                        target_object_id=order.primary_object.id,
                        source_attribute_name="id",
                        target_attribute_name="customer_id",
                    )
                ],
            )
        )

        [synced] = customer.relationships
        assert synced.canonical.type == "1:N"
        assert isinstance(synced.canonical.level, AttributeLevel)
        assert set(synced.relationships_by_model) == {
            family.conceptual.id,
            family.logical.id,
            family.physical.id,
        }
        assert isinstance(synced.relationships_by_model[family.conceptual.id].level, ObjectLevel)

        logical_row = synced.relationships_by_model[family.logical.id]
        logical_customer = customer.layers[ModelLayer.LOGICAL]
        assert logical_row.source_object_id == logical_customer.object.id
        assert logical_row.source_attribute_id == logical_customer.attributes[0].id
        logical_order_attributes = await storage.get_attributes_by_object(
            order.layers[ModelLayer.LOGICAL].object.id
        )
        assert logical_row.target_attribute_id == next(
            a.id for a in logical_order_attributes if a.name == "customer_id"
        )

    @pytest.mark.asyncio
    async def test_object_level_relationship_only_in_conceptual(
        self, orchestrator, family, make_customer_request
    ):
        """Without attribute names the edge is only written to the conceptual layer."""
        order = await orchestrator.create_object_with_cascade(
            CreateObjectRequest(object=ObjectPayload(name="Order", model_id=family.conceptual.id))
        )
        customer = await orchestrator.create_object_with_cascade(
            make_customer_request(
                family.conceptual.id,
                relationships=[RelationshipInput(target_object_id=order.primary_object.id)],
            )
        )
        [synced] = customer.relationships
        assert list(synced.relationships_by_model) == [family.conceptual.id]

    @pytest.mark.asyncio
    async def test_replica_target_shares_anchor_with_conceptual_edit(
        self, orchestrator, storage, resolver, synchronizer, locks, family
    ):
        """An edge aimed at a logical replica anchors on the conceptual identities."""
        order = await orchestrator.create_object_with_cascade(
            CreateObjectRequest(object=ObjectPayload(name="Order", model_id=family.conceptual.id))
        )
        logical_order = order.layers[ModelLayer.LOGICAL].object
        invoice = await orchestrator.create_object_with_cascade(
            CreateObjectRequest(
                object=ObjectPayload(name="Invoice", model_id=family.conceptual.id),
                relationships=[RelationshipInput(target_object_id=logical_order.id)],
            )
        )
        [synced] = invoice.relationships
        assert synced.canonical.target_object_id == order.primary_object.id

        created = await CreateRelationshipHandler(storage, resolver, synchronizer, locks).execute(
            CreateRelationshipCommand(
                model_id=family.conceptual.id,
                source_object_id=invoice.primary_object.id,
                target_object_id=order.primary_object.id,
            )
        )

        anchors = await storage.get_canonical_relationships_by_object(invoice.primary_object.id)
        assert [anchor.id for anchor in anchors] == [synced.canonical.id]
        assert created.canonical_relationship_id == synced.canonical.id

    @pytest.mark.asyncio
    async def test_missing_target_is_skipped(self, orchestrator, family, make_customer_request):
        """An unknown target object is logged and skipped, the object is still created."""
        result = await orchestrator.create_object_with_cascade(
            make_customer_request(
                family.conceptual.id,
                relationships=[RelationshipInput(target_object_id=12345)],
            )
        )
        assert result.relationships == []
        assert result.primary_object.id is not None


class TestDeleteCascade:
    """Deleting an object removes everything that hangs off it."""

    @pytest.mark.asyncio
    async def test_delete_leaves_no_rows(self, orchestrator, storage, family, make_customer_request):
        """Model-object rows, attributes and the object are all gone."""
        result = await orchestrator.create_object_with_cascade(
            make_customer_request(family.conceptual.id, cascade=False)
        )
        object_id = result.primary_object.id

        deleted = await orchestrator.delete_object_cascade(object_id)

        assert deleted.model_objects_removed == 1
        assert deleted.attributes_removed == 2
        counts = storage.row_counts()
        assert counts["DataObject"] == 0
        assert counts["ModelObject"] == 0
        assert counts["Attribute"] == 0
        assert counts["DataModel"] == 3

    @pytest.mark.asyncio
    async def test_delete_removes_relationships_and_anchors(self, orchestrator, storage, family):
        """Anchors and layer rows touching the object are removed with it."""
        order = await orchestrator.create_object_with_cascade(
            CreateObjectRequest(object=ObjectPayload(name="Order", model_id=family.conceptual.id))
        )
        customer = await orchestrator.create_object_with_cascade(
            CreateObjectRequest(
                object=ObjectPayload(name="Customer", model_id=family.conceptual.id),
                relationships=[RelationshipInput(target_object_id=order.primary_object.id)],
            )
        )
        customer_id = customer.primary_object.id

        deleted = await orchestrator.delete_object_cascade(customer_id)

        assert deleted.canonical_relationships_removed == 1
        assert deleted.relationships_removed == 1
        assert await storage.get_canonical_relationships_by_object(order.primary_object.id) == []
        assert await storage.get_relationships_by_model(family.conceptual.id) == []
        assert await storage.get_data_object(customer_id) is None

    @pytest.mark.asyncio
    async def test_delete_unknown_object(self, orchestrator):
        """Deleting a missing object raises EntityNotFoundError."""
        with pytest.raises(EntityNotFoundError):
            await orchestrator.delete_object_cascade(31337)


class TestRollback:
    """Failures after the first write are compensated."""

    @pytest.mark.asyncio
    async def test_failed_cascade_rolls_back(self, locks, make_customer_request):
        """A failing physical placement undoes every row written by the call."""
        storage = FailingModelObjectStorage()
        conceptual, _, physical = await _seed_family(storage)
        storage.fail_model_id = physical.id

        with pytest.raises(PartialCascadeError) as excinfo:
            await _orchestrator(storage, locks).create_object_with_cascade(
                make_customer_request(conceptual.id)
            )

        report = excinfo.value.report
        assert report.operation == "create_object"
        assert report.rolled_back
        assert report.unrecovered == []
        assert not report.needs_repair
        assert "placement rejected" in report.cause
        assert isinstance(excinfo.value.__cause__, RuntimeError)
        counts = storage.row_counts()
        assert counts["DataObject"] == 0
        assert counts["Attribute"] == 0
        assert counts["ModelObject"] == 0

    @pytest.mark.asyncio
    async def test_rollback_disabled_reports_pending_rows(self, locks, make_customer_request):
        """With rollback off the written rows stay and are reported as unrecovered."""
        storage = FailingModelObjectStorage()
        conceptual, _, physical = await _seed_family(storage)
        storage.fail_model_id = physical.id

        with pytest.raises(PartialCascadeError) as excinfo:
            await _orchestrator(storage, locks, rollback_on_failure=False).create_object_with_cascade(
                make_customer_request(conceptual.id)
            )

        report = excinfo.value.report
        assert report.needs_repair
        assert report.rolled_back == []
        assert storage.row_counts()["DataObject"] == 3

    @pytest.mark.asyncio
    async def test_failure_before_any_write_reraises(self, locks, make_customer_request):
        """Nothing written means the original exception propagates unchanged."""
        storage = FailingObjectStorage()
        conceptual, _, _ = await _seed_family(storage)

        with pytest.raises(RuntimeError, match="object insert rejected"):
            await _orchestrator(storage, locks).create_object_with_cascade(
                make_customer_request(conceptual.id)
            )

    @pytest.mark.asyncio
    async def test_lock_released_after_failure(self, locks, make_customer_request):
        """The family lock is free again once the failed call returns."""
        storage = FailingModelObjectStorage()
        conceptual, _, physical = await _seed_family(storage)
        storage.fail_model_id = physical.id

        with pytest.raises(PartialCascadeError):
            await _orchestrator(storage, locks).create_object_with_cascade(
                make_customer_request(conceptual.id)
            )
        assert not locks.is_locked(conceptual.id)


class TestFamilyLock:
    """Writes into one family run one at a time."""

    @pytest.mark.asyncio
    async def test_concurrent_creates_are_serialized(self, locks):
        """The second create starts writing only after the first has returned."""
        storage = GatedObjectStorage()
        conceptual, _, _ = await _seed_family(storage)
        orchestrator = _orchestrator(storage, locks)

        first = asyncio.create_task(
            orchestrator.create_object_with_cascade(
                CreateObjectRequest(object=ObjectPayload(name="First", model_id=conceptual.id))
            )
        )
        await storage.entered.wait()
        second = asyncio.create_task(
            orchestrator.create_object_with_cascade(
                CreateObjectRequest(object=ObjectPayload(name="Second", model_id=conceptual.id))
            )
        )
        for _ in range(10):
            await asyncio.sleep(0)

        assert locks.is_locked(conceptual.id)
        assert "start:Second" not in storage.events

        storage.gate.set()
        first_result, second_result = await asyncio.gather(first, second)

        last_first_write = max(i for i, e in enumerate(storage.events) if e == "end:First")
        first_second_write = storage.events.index("start:Second")
        assert last_first_write < first_second_write
        assert first_result.cascade_performed and second_result.cascade_performed
        assert not locks.is_locked(conceptual.id)
