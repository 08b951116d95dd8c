"""
Tests for DesiredStateReconciler driven by a canned desired-state generator.

Run with: pytest tests/test_reconciler.py -v
"""

import json
from typing import Optional

import pytest

from layersync.application.dto.modeling_agent import ModelingAgentRequest
from layersync.application.services import DesiredStateReconciler
from layersync.domain.entities import DataModel, DataObject
from layersync.domain.exceptions import DesiredStateSchemaError, DomainValidationError
from layersync.domain.ports.desired_state_generator import (
    DesiredStateGenerator,
    DesiredStatePrompt,
)
from layersync.domain.ports.model_exporter import ModelExporter
from layersync.domain.value_objects import AttributeLevel, ModelLayer


class FakeGenerator(DesiredStateGenerator):
    """Returns queued responses and records every prompt it receives."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.prompts: list[DesiredStatePrompt] = []

    async def generate(self, prompt: DesiredStatePrompt) -> str:
        self.prompts.append(prompt)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response if isinstance(response, str) else json.dumps(response)


def _state(
    include_order: bool = True,
    customer_relationships: Optional[list] = None,
    id_nullable: bool = False,
) -> dict:
    """Customer(id, Customer Email) and optionally Order(id, customer_id -> Customer.id)."""
    customer = {
        "name": "Customer",
        "attributes": [
            {"name": "id", "conceptualType": "Number", "isPrimaryKey": True, "nullable": id_nullable},
            {"name": "Customer Email", "conceptualType": "Text"},
        ],
    }
    order = {
        "name": "Order",
        "attributes": [
            {"name": "id", "conceptualType": "Number", "isPrimaryKey": True, "nullable": False},
            {
                "name": "customer_id",
                "conceptualType": "Number",
                "references": {"entity": "Customer", "attribute": "id"},
            },
        ],
    }
    if customer_relationships is None:
        customer_relationships = [{"target": "Order", "type": "1:N"}] if include_order else []
    conceptual = [{"name": "Customer", "relationships": customer_relationships}]
    layer_entities = [customer]
    if include_order:
        conceptual.append({"name": "Order"})
        layer_entities.append(order)
    return {
        "summary": "Sales model",
        "conceptualModel": {"entities": conceptual},
        "logicalModel": {"entities": layer_entities},
        "physicalModel": {"entities": layer_entities},
        "sql": {"postgres": "CREATE TABLE customer (id INT PRIMARY KEY);"},
        "issues": [],
        "suggestions": ["Add an index on order.customer_id"],
    }


def _reconciler(storage, resolver, synchronizer, locks, generator) -> DesiredStateReconciler:
    return DesiredStateReconciler(storage, resolver, synchronizer, generator, locks)


def _request(root_id: int, **overrides) -> ModelingAgentRequest:
    fields = dict(root_model_id=root_id, business_description="Online shop")
    fields.update(overrides)
    return ModelingAgentRequest(**fields)


async def _object_named(storage, model_id: int, name: str) -> DataObject:
    return next(o for o in await storage.get_data_objects_by_model(model_id) if o.name == name)


class TestApplyDesiredState:
    """First run on an empty family creates everything."""

    @pytest.mark.asyncio
    async def test_creates_entities_attributes_and_relationships(
        self, storage, resolver, synchronizer, locks, family
    ):
        """Two entities per layer, typed attributes and one edge per layer."""
        generator = FakeGenerator(_state())
        result = await _reconciler(storage, resolver, synchronizer, locks, generator).run(
            _request(family.root_id)
        )

        added = [entry for entry in result.diff if entry.action == "add_entity"]
        assert len(added) == 6
        assert all(entry.status == "applied" for entry in result.diff)
        assert result.summary == "Sales model"
        assert result.sql == {"postgres": "CREATE TABLE customer (id INT PRIMARY KEY);"}

        logical_customer = await _object_named(storage, family.logical.id, "Customer")
        conceptual_customer = await _object_named(storage, family.conceptual.id, "Customer")
        assert logical_customer.provenance.origin_object_id == conceptual_customer.id
        attributes = {a.name: a for a in await storage.get_attributes_by_object(logical_customer.id)}
        assert set(attributes) == {"id", "customer_email"}
        assert attributes["id"].logical_type == "INTEGER"
        assert attributes["id"].physical_type == "INT"
        assert attributes["customer_email"].physical_type == "VARCHAR(255)"

    @pytest.mark.asyncio
    async def test_relationship_rows_per_layer(self, storage, resolver, synchronizer, locks, family):
        """Conceptual edge from the entity list, attribute-level edges from references."""
        generator = FakeGenerator(_state())
        result = await _reconciler(storage, resolver, synchronizer, locks, generator).run(
            _request(family.root_id)
        )

        relationship_targets = {
            (entry.layer, entry.target)
            for entry in result.diff
            if entry.action == "add_relationship"
        }
        assert relationship_targets == {
            ("conceptual", "Customer->Order"),
            ("logical", "Customer.id->Order.customer_id"),
            ("physical", "Customer.id->Order.customer_id"),
        }
        [logical_row] = await storage.get_relationships_by_model(family.logical.id)
        assert isinstance(logical_row.level, AttributeLevel)
        assert result.conceptual_model.entities[0].relationships[0].target == "Order"
        assert result.issues == []

    @pytest.mark.asyncio
    async def test_migration_suggestions(self, storage, resolver, synchronizer, locks, family):
        """Generated suggestions come first, then hints derived from the diff."""
        generator = FakeGenerator(_state())
        result = await _reconciler(storage, resolver, synchronizer, locks, generator).run(
            _request(family.root_id)
        )

        assert result.suggestions[0] == "Add an index on order.customer_id"
        assert "Plan a CREATE TABLE for Customer." in result.suggestions
        assert "Schedule ALTER TABLE Customer ADD COLUMN customer_email." in result.suggestions

    @pytest.mark.asyncio
    async def test_second_identical_run_is_a_no_op(
        self, storage, resolver, synchronizer, locks, family
    ):
        """Reapplying the same desired state produces an empty diff."""
        generator = FakeGenerator(_state(), _state())
        reconciler = _reconciler(storage, resolver, synchronizer, locks, generator)

        await reconciler.run(_request(family.root_id))
        counts = storage.row_counts()
        second = await reconciler.run(_request(family.root_id))

        assert second.diff == []
        assert storage.row_counts() == counts


class TestRemovals:
    """Removals need allow_drop."""

    @pytest.mark.asyncio
    async def test_removals_skipped_without_allow_drop(
        self, storage, resolver, synchronizer, locks, family
    ):
        """Order stays in every layer and each removal is reported as skipped."""
        generator = FakeGenerator(_state(), _state(include_order=False))
        reconciler = _reconciler(storage, resolver, synchronizer, locks, generator)
        await reconciler.run(_request(family.root_id))

        result = await reconciler.run(_request(family.root_id, allow_drop=False))

        skipped = [entry for entry in result.diff if entry.status == "skipped"]
        assert {entry.action for entry in skipped} == {"remove_entity", "remove_relationship"}
        assert [e.layer for e in skipped if e.action == "remove_entity"] == [
            "conceptual",
            "logical",
            "physical",
        ]
        assert skipped[0].detail == "AI suggested removal but allowDrop=false"
        assert storage.row_counts()["DataObject"] == 6
        assert not any("DROP" in suggestion for suggestion in result.suggestions)

    @pytest.mark.asyncio
    async def test_removals_applied_with_allow_drop(
        self, storage, resolver, synchronizer, locks, family
    ):
        """Order and everything touching it is deleted from every layer."""
        generator = FakeGenerator(_state(), _state(include_order=False))
        reconciler = _reconciler(storage, resolver, synchronizer, locks, generator)
        await reconciler.run(_request(family.root_id))

        result = await reconciler.run(_request(family.root_id, allow_drop=True))

        removed = [entry for entry in result.diff if entry.action == "remove_entity"]
        assert [entry.status for entry in removed] == ["applied"] * 3
        assert removed[0].detail == "Entity removed per AI recommendation"
        counts = storage.row_counts()
        assert counts["DataObject"] == 3
        assert counts["Relationship"] == 0
        assert counts["CanonicalRelationship"] == 0
        assert (
            "Plan a DROP TABLE for Order after validating downstream impacts."
            in result.suggestions
        )

    @pytest.mark.asyncio
    async def test_attribute_removal(self, storage, resolver, synchronizer, locks, family):
        """A dropped attribute is removed only with allow_drop."""
        trimmed = _state(include_order=False)
        for layer_key in ("logicalModel", "physicalModel"):
            trimmed[layer_key]["entities"][0]["attributes"] = trimmed[layer_key]["entities"][0][
                "attributes"
            ][:1]
        generator = FakeGenerator(_state(include_order=False), trimmed, trimmed)
        reconciler = _reconciler(storage, resolver, synchronizer, locks, generator)
        await reconciler.run(_request(family.root_id))

        kept = await reconciler.run(_request(family.root_id))
        dropped = await reconciler.run(_request(family.root_id, allow_drop=True))

        assert [e.detail for e in kept.diff] == [
            "AI suggested attribute removal but allowDrop=false"
        ] * 2
        assert [e.detail for e in dropped.diff] == ["Attribute removed"] * 2
        assert (
            "Prepare ALTER TABLE Customer DROP COLUMN customer_email with data backup."
            in dropped.suggestions
        )
        assert storage.row_counts()["Attribute"] == 2


class TestMatchingAndNormalization:
    """Existing entities match by name or alias; cardinalities are normalized."""

    @pytest.mark.asyncio
    async def test_alias_renames_existing_entity(
        self, storage, resolver, synchronizer, locks, family
    ):
        """'Client' is matched through an alias and renamed in place."""
        client = await storage.create_data_object(DataObject(name="Client", model_id=family.conceptual.id))
        generator = FakeGenerator(
            {
                "summary": "rename",
                "conceptualModel": {"entities": [{"name": "Customer", "aliases": ["Client"]}]},
                "logicalModel": {"entities": []},
                "physicalModel": {"entities": []},
            }
        )

        result = await _reconciler(storage, resolver, synchronizer, locks, generator).run(
            _request(family.root_id)
        )

        assert [(e.action, e.target) for e in result.diff] == [("update_entity", "Customer")]
        assert (await storage.get_data_object(client.id)).name == "Customer"

    @pytest.mark.asyncio
    async def test_many_to_one_is_flipped(self, storage, resolver, synchronizer, locks, family):
        """Order N:1 Customer is stored as Customer 1:N Order."""
        generator = FakeGenerator(
            {
                "summary": "flip",
                "conceptualModel": {
                    "entities": [
                        {"name": "Customer"},
                        {"name": "Order", "relationships": [{"target": "Customer", "type": "N:1"}]},
                        {"name": "Invoice", "relationships": [{"target": "Ghost"}]},
                    ]
                },
                "logicalModel": {"entities": []},
                "physicalModel": {"entities": []},
            }
        )

        await _reconciler(storage, resolver, synchronizer, locks, generator).run(
            _request(family.root_id)
        )

        [row] = await storage.get_relationships_by_model(family.conceptual.id)
        customer = await _object_named(storage, family.conceptual.id, "Customer")
        assert row.source_object_id == customer.id
        assert row.type == "1:N"


class TestIssues:
    """Advisory checks on the stored result."""

    @pytest.mark.asyncio
    async def test_nullable_primary_key_reported_once(
        self, storage, resolver, synchronizer, locks, family
    ):
        """A nullable key is stored as generated and flagged as an error."""
        generator = FakeGenerator(_state(include_order=False, id_nullable=True))

        result = await _reconciler(storage, resolver, synchronizer, locks, generator).run(
            _request(family.root_id)
        )

        errors = [issue for issue in result.issues if issue.severity == "error"]
        assert [issue.message for issue in errors] == [
            "Customer.id is a primary key but allows NULL values"
        ]

    @pytest.mark.asyncio
    async def test_generated_issues_are_kept(self, storage, resolver, synchronizer, locks, family):
        """Issues from the generator come first in the merged list."""
        state = _state(include_order=False)
        state["issues"] = [{"severity": "info", "message": "Consider soft deletes"}]
        generator = FakeGenerator(state)

        result = await _reconciler(storage, resolver, synchronizer, locks, generator).run(
            _request(family.root_id)
        )

        assert result.issues[0].message == "Consider soft deletes"


class TestRunEntryPoint:
    """Family selection, prompt contents and failure handling."""

    @pytest.mark.asyncio
    async def test_model_name_creates_family(self, storage, resolver, synchronizer, locks):
        """Without a root id a new triad is created and recorded in the diff."""
        generator = FakeGenerator(_state(include_order=False))

        result = await _reconciler(storage, resolver, synchronizer, locks, generator).run(
            ModelingAgentRequest(model_name="Shop")
        )

        assert result.diff[0].action == "create_model_family"
        assert result.diff[0].layer == "all"
        assert result.diff[0].detail == "Created conceptual, logical, and physical models"
        assert storage.row_counts()["DataModel"] == 3

    @pytest.mark.asyncio
    async def test_missing_layers_are_created(self, storage, resolver, synchronizer, locks):
        """A lone conceptual model gets logical and physical children first."""
        root = await storage.create_data_model(DataModel(name="Solo", layer=ModelLayer.CONCEPTUAL))
        generator = FakeGenerator(_state(include_order=False))

        result = await _reconciler(storage, resolver, synchronizer, locks, generator).run(
            _request(root.id)
        )

        created_layers = [e.layer for e in result.diff if e.action == "create_model_family"]
        assert created_layers == ["logical", "physical"]
        assert len(result.physical_model.entities) == 1

    @pytest.mark.asyncio
    async def test_requires_root_or_name(self, storage, resolver, synchronizer, locks):
        """Neither a root id nor a name is a validation error."""
        generator = FakeGenerator()
        with pytest.raises(DomainValidationError, match="root_model_id or model_name"):
            await _reconciler(storage, resolver, synchronizer, locks, generator).run(
                ModelingAgentRequest()
            )
        assert generator.prompts == []

    @pytest.mark.asyncio
    async def test_prompt_carries_request_and_snapshot(
        self, storage, resolver, synchronizer, locks, family
    ):
        """The generator sees the request flags and the serialized family."""
        await storage.create_data_object(DataObject(name="Product", model_id=family.conceptual.id))
        generator = FakeGenerator(_state(include_order=False))

        await _reconciler(storage, resolver, synchronizer, locks, generator).run(
            _request(family.root_id, allow_drop=True, target_database="postgres")
        )

        [prompt] = generator.prompts
        assert prompt.allow_drop is True
        assert prompt.target_database == "postgres"
        assert prompt.business_description == "Online shop"
        assert prompt.serialized_context["conceptual"]["entities"][0]["name"] == "Product"

    @pytest.mark.asyncio
    async def test_invalid_response_aborts_before_writes(
        self, storage, resolver, synchronizer, locks, family
    ):
        """Unknown keys fail validation and nothing is written."""
        generator = FakeGenerator({"summary": "bad", "tables": []})

        with pytest.raises(DesiredStateSchemaError) as exc_info:
            await _reconciler(storage, resolver, synchronizer, locks, generator).run(
                _request(family.root_id)
            )

        assert exc_info.value.details
        assert storage.row_counts()["DataObject"] == 0
        assert not locks.is_locked(family.root_id)

    @pytest.mark.asyncio
    async def test_generator_failure_propagates(
        self, storage, resolver, synchronizer, locks, family
    ):
        """Provider errors are re-raised unchanged."""
        generator = FakeGenerator(ConnectionError("provider down"))

        with pytest.raises(ConnectionError):
            await _reconciler(storage, resolver, synchronizer, locks, generator).run(
                _request(family.root_id)
            )


class RecordingExporter(ModelExporter):
    """Renders a fixed statement and keeps what it was asked to export."""

    def __init__(self):
        self.calls = []

    async def export_ddl(self, model, objects, attributes, relationships, target_database):
        self.calls.append((model, objects, attributes, relationships, target_database))
        return f"-- {target_database}: {', '.join(sorted(o.name for o in objects))}"


class TestSqlExport:
    """Generated sql passes through unless an exporter renders the stored model."""

    @pytest.mark.asyncio
    async def test_exporter_replaces_target_database_entry(
        self, storage, resolver, synchronizer, locks, family
    ):
        """The stored physical model is exported for the requested database."""
        exporter = RecordingExporter()
        reconciler = DesiredStateReconciler(
            storage, resolver, synchronizer, FakeGenerator(_state()), locks, exporter=exporter
        )

        result = await reconciler.run(_request(family.root_id, target_database="postgres"))

        assert result.sql == {"postgres": "-- postgres: Customer, Order"}
        [(model, objects, attributes, relationships, target)] = exporter.calls
        assert model.id == family.physical.id
        assert target == "postgres"
        assert {a.name for a in attributes} == {"id", "customer_email", "customer_id"}
        assert len(relationships) == 1

    @pytest.mark.asyncio
    async def test_generated_sql_kept_without_target_database(
        self, storage, resolver, synchronizer, locks, family
    ):
        """No target database means the exporter is not consulted."""
        exporter = RecordingExporter()
        reconciler = DesiredStateReconciler(
            storage, resolver, synchronizer, FakeGenerator(_state()), locks, exporter=exporter
        )

        result = await reconciler.run(_request(family.root_id))

        assert result.sql == {"postgres": "CREATE TABLE customer (id INT PRIMARY KEY);"}
        assert exporter.calls == []
