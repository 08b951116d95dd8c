"""
Tests for the advisory checks and relationship normalization.

Run with: pytest tests/test_consistency_checks.py -v
"""

import sys

from layersync.application.dto.desired_state import DesiredRelationship, Issue
from layersync.application.services.reconciler import normalize_relationship
from layersync.application.services.reconciler.consistency_checks import (
    detect_issues,
    detect_relationship_cycles,
    merge_issues,
    merge_suggestions,
)
from layersync.application.services.reconciler.context import (
    LayerContext,
    LayerEntity,
    ModelingContext,
)
from layersync.domain.entities import Attribute, DataModel, DataObject, LayerRelationship
from layersync.domain.value_objects import AttributeLevel, ModelLayer

CONCEPTUAL = DataModel(name="Sales", layer=ModelLayer.CONCEPTUAL, id=1)
LOGICAL = DataModel(name="Sales", layer=ModelLayer.LOGICAL, parent_model_id=1, id=2)


def _entities(*names: str, model_id: int = 1) -> list[LayerEntity]:
    return [
        LayerEntity(object=DataObject(name=name, model_id=model_id, id=index + 1))
        for index, name in enumerate(names)
    ]


def _edge(source: int, target: int, model: DataModel = CONCEPTUAL) -> LayerRelationship:
    return LayerRelationship(
        model_id=model.id, layer=model.layer, source_object_id=source, target_object_id=target
    )


class TestRelationshipCycles:
    """Cycles among object-level conceptual relationships."""

    def test_three_node_cycle(self):
        """A -> B -> C -> A is reported as a closed path."""
        layer = LayerContext(
            model=CONCEPTUAL,
            entities=_entities("A", "B", "C"),
            relationships=[_edge(1, 2), _edge(2, 3), _edge(3, 1)],
        )
        assert detect_relationship_cycles(layer) == [["A", "B", "C", "A"]]

    def test_acyclic(self):
        """A diamond has no cycle."""
        layer = LayerContext(
            model=CONCEPTUAL,
            entities=_entities("A", "B", "C", "D"),
            relationships=[_edge(1, 2), _edge(1, 3), _edge(2, 4), _edge(3, 4)],
        )
        assert detect_relationship_cycles(layer) == []

    def test_self_loop(self):
        """An entity pointing at itself is a one-node cycle."""
        layer = LayerContext(model=CONCEPTUAL, entities=_entities("A"), relationships=[_edge(1, 1)])
        assert detect_relationship_cycles(layer) == [["A", "A"]]

    def test_long_chain_beyond_recursion_limit(self):
        """A chain longer than the interpreter recursion limit is still walked."""
        size = sys.getrecursionlimit() + 500
        names = [f"E{index}" for index in range(size)]
        edges = [_edge(index, index + 1) for index in range(1, size)]
        edges.append(_edge(size, 1))
        layer = LayerContext(model=CONCEPTUAL, entities=_entities(*names), relationships=edges)

        [cycle] = detect_relationship_cycles(layer)
        assert len(cycle) == size + 1
        assert cycle[0] == cycle[-1] == "E0"

    def test_attribute_level_rows_ignored(self):
        """Only object-level rows are walked."""
        row = _edge(2, 1)
        row.level = AttributeLevel(10, 11)
        layer = LayerContext(
            model=CONCEPTUAL, entities=_entities("A", "B"), relationships=[_edge(1, 2), row]
        )
        assert detect_relationship_cycles(layer) == []


class TestDetectIssues:
    """Key nullability and unreferenced foreign keys."""

    def test_nullable_primary_key_is_error(self):
        """PK that allows NULL is flagged on any layer."""
        [entity] = _entities("Customer", model_id=2)
        entity.attributes = [Attribute(name="id", object_id=1, is_primary_key=True, nullable=True, id=5)]
        context = ModelingContext(root_model_id=1, logical=LayerContext(model=LOGICAL, entities=[entity]))

        [issue] = detect_issues(context)
        assert issue.severity == "error"
        assert issue.message == "Customer.id is a primary key but allows NULL values"
        assert issue.entity == "Customer"

    def test_unreferenced_foreign_key_is_warning(self):
        """A foreign key no attribute-level row points at gets a warning."""
        customer, order = _entities("Customer", "Order", model_id=2)
        order.attributes = [Attribute(name="customer_id", object_id=2, is_foreign_key=True, id=7)]
        context = ModelingContext(
            root_model_id=1, logical=LayerContext(model=LOGICAL, entities=[customer, order])
        )

        [issue] = detect_issues(context)
        assert issue.severity == "warning"
        assert "Order.customer_id is marked as foreign key" in issue.message

    def test_referenced_foreign_key_is_clean(self):
        """An attribute-level relationship targeting the key clears the warning."""
        customer, order = _entities("Customer", "Order", model_id=2)
        customer.attributes = [Attribute(name="id", object_id=1, is_primary_key=True, nullable=False, id=6)]
        order.attributes = [Attribute(name="customer_id", object_id=2, is_foreign_key=True, id=7)]
        row = _edge(1, 2, LOGICAL)
        row.level = AttributeLevel(6, 7)
        context = ModelingContext(
            root_model_id=1,
            logical=LayerContext(model=LOGICAL, entities=[customer, order], relationships=[row]),
        )
        assert detect_issues(context) == []

    def test_cycle_becomes_warning(self):
        """Conceptual cycles surface as warnings."""
        context = ModelingContext(
            root_model_id=1,
            conceptual=LayerContext(
                model=CONCEPTUAL, entities=_entities("A", "B"), relationships=[_edge(1, 2), _edge(2, 1)]
            ),
        )
        [issue] = detect_issues(context)
        assert issue.message == "Relationship cycle detected: A -> B -> A"


class TestMerge:
    def test_merge_issues_first_wins(self):
        """Duplicates by severity, entity and message collapse to the first."""
        reported = [Issue(severity="error", message="x", entity="A")]
        computed = [Issue(severity="error", message="x", entity="A"), Issue(message="y")]
        merged = merge_issues(reported, computed)
        assert [i.message for i in merged] == ["x", "y"]
        assert merged[0] is reported[0]

    def test_merge_suggestions_trims_and_dedupes(self):
        assert merge_suggestions([" a ", ""], ["a", "b"]) == ["a", "b"]


class TestNormalizeRelationship:
    """Cardinality normalization for generated relationships."""

    def test_many_to_one_flips(self):
        normalized = normalize_relationship("Order", DesiredRelationship(target="Customer", type="N:1"))
        assert (normalized.source, normalized.target, normalized.type) == ("Customer", "Order", "1:N")

    def test_m_to_n_alias(self):
        normalized = normalize_relationship("Student", DesiredRelationship(target="Course", type="M:N"))
        assert normalized.type == "N:M"
        assert normalized.source == "Student"

    def test_passthrough(self):
        normalized = normalize_relationship(
            "A", DesiredRelationship(target="B", type="1:1", description="owns")
        )
        assert (normalized.type, normalized.description) == ("1:1", "owns")

    def test_blank_target(self):
        """No target means no relationship."""
        assert normalize_relationship("A", DesiredRelationship(target="")) is None
