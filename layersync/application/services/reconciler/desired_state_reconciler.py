"""
Desired-State Reconciler (AI modeling agent).

Flow:
1. Load the family of `root_model_id`, or create a fresh conceptual/logical/
   physical triad named `model_name`. Missing logical/physical layers are
   created so every run works on a complete family.
2. Serialize a bounded snapshot and ask the DesiredStateGenerator for the
   full desired state. The raw text must parse into DesiredState or the run
   aborts with DesiredStateSchemaError.
3. Sync entities layer by layer (conceptual, logical, physical), rebuilding
   the snapshot between layers. Logical/physical entities also sync their
   attributes.
4. Sync conceptual relationships from the desired entities, then turn
   attribute `references` into attribute-level relationships in the logical
   and physical layers.
5. Run the consistency checks and derive migration hints.
6. Pass the generated `sql` map through. With a ModelExporter wired in and a
   target database requested, the stored physical model is rendered and
   replaces that database's entry.

Removals are only applied with `allow_drop=True`; otherwise they are
reported as skipped diff entries and nothing is deleted.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional, Union

from layersync.application.dto.desired_state import (
    DesiredAttribute,
    DesiredConceptualEntity,
    DesiredLogicalEntity,
    DesiredRelationship,
    DesiredState,
    parse_desired_state,
)
from layersync.application.dto.modeling_agent import (
    AttributeView,
    ConceptualEntityView,
    ConceptualModelView,
    DiffEntry,
    LayerEntityView,
    LayerModelView,
    ModelingAgentRequest,
    ModelingAgentResult,
    RelationshipView,
)
from layersync.application.dto.relationships import (
    RelationshipSyncRequest,
    UpsertOutcome,
)
from layersync.application.services.canonical_relationships import (
    ensure_canonical_relationship,
    find_canonical_relationships,
)
from layersync.application.services.cascade_orchestrator import purge_object
from layersync.application.services.family_locks import FamilyLockRegistry
from layersync.application.services.family_resolver import FamilyResolver
from layersync.application.services.naming import (
    normalize_attribute_name,
    normalize_name,
)
from layersync.application.services.reconciler.consistency_checks import (
    detect_issues,
    merge_issues,
    merge_suggestions,
)
from layersync.application.services.reconciler.context import (
    LayerContext,
    LayerEntity,
    ModelingContext,
    build_modeling_context,
)
from layersync.application.services.reconciler.context_serializer import (
    serialize_context,
)
from layersync.application.services.reconciler.migration_hints import (
    build_migration_suggestions,
)
from layersync.application.services.reconciler.type_mapping import (
    infer_logical_type,
    infer_physical_type,
)
from layersync.application.services.relationship_synchronizer import (
    RelationshipSynchronizer,
)
from layersync.application.services.sync_context import SyncContext
from layersync.config.settings import Config
from layersync.domain.entities import Attribute, DataModel, DataObject, ModelObject
from layersync.domain.exceptions import DesiredStateSchemaError, DomainValidationError
from layersync.domain.ports.desired_state_generator import (
    DesiredStateGenerator,
    DesiredStatePrompt,
)
from layersync.domain.ports.model_exporter import ModelExporter
from layersync.domain.ports.repositories import ModelingStorage
from layersync.domain.value_objects import (
    OBJECT_LEVEL,
    AttributeLevel,
    ModelLayer,
    Provenance,
)
from layersync.observability.metrics import (
    MetricsErrorType,
    decrement_active_reconciliations,
    increment_active_reconciliations,
    increment_error,
    observe_sync_latency,
    record_diff_entry,
)
from layersync.prompts import ModelingPrompts

logger = logging.getLogger(__name__)

DesiredEntity = Union[DesiredConceptualEntity, DesiredLogicalEntity]

AGENT_CREATED_BY = "ai_modeling_agent"
SUPPORTED_CARDINALITIES = ("1:1", "1:N", "N:M")


@dataclass(frozen=True)
class NormalizedRelationship:
    source: str
    target: str
    type: str
    description: Optional[str] = None


def normalize_relationship(
    source_name: str, relationship: DesiredRelationship
) -> Optional[NormalizedRelationship]:
    """M:N -> N:M, N:1 flips direction to 1:N, unknown -> 1:N. None without a target."""
    if not relationship.target:
        return None

    cardinality = relationship.type.upper()
    source, target = source_name, relationship.target
    if cardinality == "M:N":
        cardinality = "N:M"
    if cardinality == "N:1":
        source, target = target, source
        cardinality = "1:N"
    if cardinality not in SUPPORTED_CARDINALITIES:
        cardinality = "1:N"

    return NormalizedRelationship(source, target, cardinality, relationship.description)


def _entity_keys(entity: DesiredEntity) -> list[str]:
    return [normalize_name(value) for value in [entity.name, *entity.aliases]]


class DesiredStateReconciler:
    def __init__(
        self,
        storage: ModelingStorage,
        resolver: FamilyResolver,
        synchronizer: RelationshipSynchronizer,
        generator: DesiredStateGenerator,
        locks: FamilyLockRegistry,
        entity_limit: Optional[int] = None,
        attribute_limit: Optional[int] = None,
        exporter: Optional[ModelExporter] = None,
    ):
        self._storage = storage
        self._resolver = resolver
        self._synchronizer = synchronizer
        self._generator = generator
        self._locks = locks
        self._entity_limit = entity_limit or Config.CONTEXT_ENTITY_LIMIT
        self._attribute_limit = attribute_limit or Config.CONTEXT_ATTRIBUTE_LIMIT
        self._exporter = exporter

    async def run(self, request: ModelingAgentRequest) -> ModelingAgentResult:
        if not request.root_model_id and not request.model_name:
            raise DomainValidationError("Either root_model_id or model_name must be provided")

        start = time.perf_counter()
        increment_active_reconciliations()
        try:
            diff: list[DiffEntry] = []
            if request.root_model_id:
                family = await self._resolver.resolve_by_id(request.root_model_id)
                root_id = family.root_id
            else:
                root_id = await self._create_model_family(request.model_name, diff)

            async with self._locks.hold(root_id):
                result = await self._reconcile(request, root_id, diff)
        finally:
            decrement_active_reconciliations()

        for entry in result.diff:
            record_diff_entry(entry.action, entry.status)
        observe_sync_latency("reconcile", time.perf_counter() - start)
        applied = sum(1 for entry in result.diff if entry.status == "applied")
        logger.info(
            f"[Reconciler] Family {root_id}: {applied} applied, "
            f"{len(result.diff) - applied} skipped, {len(result.issues)} issue(s)"
        )
        return result

    async def _reconcile(
        self, request: ModelingAgentRequest, root_id: int, diff: list[DiffEntry]
    ) -> ModelingAgentResult:
        context = await build_modeling_context(self._storage, self._resolver, root_id)
        context = await self._ensure_layer_completeness(context, diff)

        desired = await self._generate(request, context)
        context = await self._apply(desired, context, request.allow_drop, diff)

        issues = merge_issues(desired.issues, detect_issues(context))
        suggestions = merge_suggestions(
            desired.suggestions, build_migration_suggestions(diff, request.allow_drop)
        )
        return ModelingAgentResult(
            summary=desired.summary,
            assumptions=desired.assumptions,
            conceptual_model=self._format_conceptual(context.conceptual),
            logical_model=self._format_layer(context.logical),
            physical_model=self._format_layer(context.physical),
            sql=await self._render_sql(request, context, desired.sql),
            issues=issues,
            suggestions=suggestions,
            diff=diff,
        )

    async def _render_sql(
        self, request: ModelingAgentRequest, context: ModelingContext, generated: dict[str, str]
    ) -> dict[str, str]:
        sql = dict(generated)
        physical = context.physical
        if self._exporter is None or not request.target_database or physical is None:
            return sql
        sql[request.target_database] = await self._exporter.export_ddl(
            physical.model,
            [entity.object for entity in physical.entities],
            [attribute for entity in physical.entities for attribute in entity.attributes],
            list(physical.relationships),
            request.target_database,
        )
        return sql

    # ==================== FAMILY ====================
    async def _create_model_family(self, name: str, diff: list[DiffEntry]) -> int:
        conceptual = await self._storage.create_data_model(
            DataModel(name=name, layer=ModelLayer.CONCEPTUAL)
        )
        await self._storage.create_data_model(conceptual.child(ModelLayer.LOGICAL))
        await self._storage.create_data_model(conceptual.child(ModelLayer.PHYSICAL))
        diff.append(
            DiffEntry(
                action="create_model_family",
                layer="all",
                target=name,
                status="applied",
                detail="Created conceptual, logical, and physical models",
            )
        )
        logger.info(f"[Reconciler] Created model family '{name}' (root {conceptual.id})")
        return conceptual.id

    async def _ensure_layer_completeness(
        self, context: ModelingContext, diff: list[DiffEntry]
    ) -> ModelingContext:
        conceptual = context.conceptual.model
        for layer in (ModelLayer.LOGICAL, ModelLayer.PHYSICAL):
            if context.layer(layer) is not None:
                continue
            await self._storage.create_data_model(conceptual.child(layer))
            diff.append(
                DiffEntry(
                    action="create_model_family",
                    layer=layer.value,
                    target=conceptual.name,
                    status="applied",
                    detail=f"Created {layer.value} layer to align with conceptual model",
                )
            )
            context = await self._rebuild(context)
        return context

    async def _rebuild(self, context: ModelingContext) -> ModelingContext:
        return await build_modeling_context(self._storage, self._resolver, context.root_model_id)

    # ==================== GENERATION ====================
    async def _generate(
        self, request: ModelingAgentRequest, context: ModelingContext
    ) -> DesiredState:
        prompt = DesiredStatePrompt(
            system_prompt=ModelingPrompts.system_prompt(),
            business_description=request.business_description,
            instructions=request.instructions,
            allow_drop=request.allow_drop,
            target_database=request.target_database,
            serialized_context=serialize_context(
                context, self._entity_limit, self._attribute_limit
            ),
        )
        try:
            raw = await self._generator.generate(prompt)
        except Exception as e:
            increment_error(MetricsErrorType.LLM_FAILED)
            logger.error(f"[Reconciler] Desired-state generation failed: {e}")
            raise

        try:
            return parse_desired_state(raw)
        except DesiredStateSchemaError as e:
            increment_error(MetricsErrorType.SCHEMA_INVALID)
            logger.warning(f"[Reconciler] Rejected generated state: {e} {e.details[:3]}")
            raise

    # ==================== APPLY ====================
    async def _apply(
        self,
        desired: DesiredState,
        context: ModelingContext,
        allow_drop: bool,
        diff: list[DiffEntry],
    ) -> ModelingContext:
        layer_entities = {
            ModelLayer.CONCEPTUAL: desired.conceptual_model.entities,
            ModelLayer.LOGICAL: desired.logical_model.entities,
            ModelLayer.PHYSICAL: desired.physical_model.entities,
        }
        for layer in ModelLayer.ordered():
            layer_context = context.layer(layer)
            if layer_context is None:
                continue
            diff.extend(
                await self._sync_layer(
                    layer, layer_context, layer_entities[layer], allow_drop, context.conceptual
                )
            )
            context = await self._rebuild(context)

        diff.extend(
            await self._sync_conceptual_relationships(
                context.conceptual, desired.conceptual_model.entities, allow_drop
            )
        )
        for layer in (ModelLayer.LOGICAL, ModelLayer.PHYSICAL):
            diff.extend(
                await self._sync_reference_relationships(
                    layer, context.layer(layer), layer_entities[layer]
                )
            )
        return await self._rebuild(context)

    async def _sync_layer(
        self,
        layer: ModelLayer,
        layer_context: LayerContext,
        desired_entities: list[DesiredEntity],
        allow_drop: bool,
        conceptual_context: Optional[LayerContext],
    ) -> list[DiffEntry]:
        diff: list[DiffEntry] = []
        existing_by_key = {
            normalize_name(entity.object.name): entity for entity in layer_context.entities
        }
        desired_keys = {key for entity in desired_entities for key in _entity_keys(entity)}

        for desired in desired_entities:
            existing = next(
                (existing_by_key[key] for key in _entity_keys(desired) if key in existing_by_key),
                None,
            )

            if existing is None:
                existing = await self._create_entity(
                    layer, layer_context.model, desired, conceptual_context
                )
                diff.append(
                    DiffEntry(
                        action="add_entity",
                        layer=layer.value,
                        target=desired.name,
                        status="applied",
                        detail="Entity created by AI modeling agent",
                    )
                )
            else:
                changes = {}
                if desired.name != existing.object.name:
                    changes["name"] = desired.name
                if existing.object.description != desired.description:
                    changes["description"] = desired.description
                if changes:
                    existing.object = await self._storage.update_data_object(
                        existing.object.id, changes
                    )
                    diff.append(
                        DiffEntry(
                            action="update_entity",
                            layer=layer.value,
                            target=desired.name,
                            status="applied",
                            detail="Updated entity metadata",
                        )
                    )

            if isinstance(desired, DesiredLogicalEntity):
                diff.extend(
                    await self._sync_attributes(
                        layer, existing.object, existing.attributes, desired.attributes, allow_drop
                    )
                )

        for entity in layer_context.entities:
            if normalize_name(entity.object.name) in desired_keys:
                continue
            if allow_drop:
                await purge_object(self._storage, entity.object.id)
                diff.append(
                    DiffEntry(
                        action="remove_entity",
                        layer=layer.value,
                        target=entity.object.name,
                        status="applied",
                        detail="Entity removed per AI recommendation",
                    )
                )
            else:
                diff.append(
                    DiffEntry(
                        action="remove_entity",
                        layer=layer.value,
                        target=entity.object.name,
                        status="skipped",
                        detail="AI suggested removal but allowDrop=false",
                    )
                )
        return diff

    async def _create_entity(
        self,
        layer: ModelLayer,
        model: DataModel,
        desired: DesiredEntity,
        conceptual_context: Optional[LayerContext],
    ) -> LayerEntity:
        provenance = None
        metadata = {}
        if layer is not ModelLayer.CONCEPTUAL and conceptual_context is not None:
            origin = next(
                (
                    match
                    for match in map(conceptual_context.entity_named, [desired.name, *desired.aliases])
                    if match is not None
                ),
                None,
            )
            if origin is not None:
                provenance = Provenance(origin.object.id, conceptual_context.model.id, layer)
                metadata.update(provenance.to_metadata())

        data_object = await self._storage.create_data_object(
            DataObject(
                name=desired.name,
                model_id=model.id,
                description=desired.description,
                domain_id=model.domain_id,
                data_area_id=model.data_area_id,
                target_system_id=model.target_system_id,
                position={"x": 0, "y": 0},
                metadata=metadata,
                provenance=provenance,
            )
        )
        model_object = await self._storage.create_data_model_object(
            ModelObject(
                model_id=model.id,
                object_id=data_object.id,
                position={"x": 0, "y": 0},
                target_system_id=model.target_system_id,
                is_visible=True,
                layer_specific_config={"layer": layer.value, "created_by": AGENT_CREATED_BY},
            )
        )
        return LayerEntity(object=data_object, model_object=model_object, attributes=[])

    async def _sync_attributes(
        self,
        layer: ModelLayer,
        data_object: DataObject,
        existing_attributes: list[Attribute],
        desired_attributes: list[DesiredAttribute],
        allow_drop: bool,
    ) -> list[DiffEntry]:
        diff: list[DiffEntry] = []
        existing_by_key = {
            normalize_attribute_name(attribute.name): attribute for attribute in existing_attributes
        }
        desired_keys = {normalize_attribute_name(attribute.name) for attribute in desired_attributes}

        for index, desired in enumerate(desired_attributes):
            name = normalize_attribute_name(desired.name)
            logical_type = infer_logical_type(desired, layer)
            physical_type = infer_physical_type(desired, logical_type)
            fields = {
                "name": name,
                "conceptual_type": desired.conceptual_type,
                "logical_type": logical_type,
                "physical_type": physical_type,
                "description": desired.description,
                "nullable": desired.nullable,
                "is_primary_key": desired.is_primary_key,
                "is_foreign_key": desired.is_foreign_key or desired.references is not None,
                "order_index": index,
            }
            metadata = {
                "entity": data_object.name,
                "attribute": name,
                "logicalType": logical_type,
                "physicalType": physical_type,
            }

            existing = existing_by_key.get(name)
            if existing is None:
                created = await self._storage.create_attribute(
                    Attribute(object_id=data_object.id, **fields)
                )
                diff.append(
                    DiffEntry(
                        action="add_attribute",
                        layer=layer.value,
                        target=f"{data_object.name}.{created.name}",
                        status="applied",
                        detail="Attribute created",
                        metadata=metadata,
                    )
                )
                continue

            changes = {
                field_name: value
                for field_name, value in fields.items()
                if getattr(existing, field_name) != value
            }
            if changes:
                await self._storage.update_attribute(existing.id, changes)
                diff.append(
                    DiffEntry(
                        action="update_attribute",
                        layer=layer.value,
                        target=f"{data_object.name}.{name}",
                        status="applied",
                        detail="Attribute updated",
                        metadata=metadata,
                    )
                )

        for attribute in existing_attributes:
            if normalize_attribute_name(attribute.name) in desired_keys:
                continue
            metadata = {"entity": data_object.name, "attribute": attribute.name}
            if allow_drop:
                await self._storage.delete_attribute(attribute.id)
                diff.append(
                    DiffEntry(
                        action="remove_attribute",
                        layer=layer.value,
                        target=f"{data_object.name}.{attribute.name}",
                        status="applied",
                        detail="Attribute removed",
                        metadata=metadata,
                    )
                )
            else:
                diff.append(
                    DiffEntry(
                        action="remove_attribute",
                        layer=layer.value,
                        target=f"{data_object.name}.{attribute.name}",
                        status="skipped",
                        detail="AI suggested attribute removal but allowDrop=false",
                        metadata=metadata,
                    )
                )
        return diff

    # ==================== RELATIONSHIPS ====================
    async def _sync_conceptual_relationships(
        self,
        layer_context: LayerContext,
        desired_entities: list[DesiredConceptualEntity],
        allow_drop: bool,
    ) -> list[DiffEntry]:
        diff: list[DiffEntry] = []
        sync_context = SyncContext()
        model = layer_context.model

        desired_edges: dict[tuple[int, int], NormalizedRelationship] = {}
        for entity in desired_entities:
            for relationship in entity.relationships:
                normalized = normalize_relationship(entity.name, relationship)
                if normalized is None:
                    continue
                source = layer_context.entity_named(normalized.source)
                target = layer_context.entity_named(normalized.target)
                if source is None or target is None:
                    logger.debug(
                        f"[Reconciler] Unknown endpoint in {normalized.source} -> {normalized.target}, skipping"
                    )
                    continue
                desired_edges[(source.object.id, target.object.id)] = normalized

        existing_edges = {
            (row.source_object_id, row.target_object_id): row
            for row in layer_context.object_level_relationships()
        }

        for (source_id, target_id), normalized in desired_edges.items():
            label = f"{layer_context.name_of(source_id)}->{layer_context.name_of(target_id)}"
            row = existing_edges.get((source_id, target_id))
            await ensure_canonical_relationship(
                self._storage,
                source_id,
                target_id,
                OBJECT_LEVEL,
                normalized.type,
                context=sync_context,
                description=normalized.description,
            )
            upsert = await self._synchronizer.upsert_layer_relationship(
                model,
                source_id,
                target_id,
                OBJECT_LEVEL,
                relationship_type=normalized.type,
                source_handle=row.source_handle if row else None,
                target_handle=row.target_handle if row else None,
                name=row.name if row else None,
                description=normalized.description,
                context=sync_context,
            )
            if upsert.outcome is UpsertOutcome.UNCHANGED:
                continue
            created = upsert.outcome is UpsertOutcome.CREATED
            diff.append(
                DiffEntry(
                    action="add_relationship" if created else "update_relationship",
                    layer="conceptual",
                    target=label,
                    status="applied",
                    detail="Relationship created" if created else "Relationship updated",
                    metadata={"type": normalized.type},
                )
            )

        for (source_id, target_id), row in existing_edges.items():
            if (source_id, target_id) in desired_edges:
                continue
            label = f"{layer_context.name_of(source_id)}->{layer_context.name_of(target_id)}"
            if not allow_drop:
                diff.append(
                    DiffEntry(
                        action="remove_relationship",
                        layer="conceptual",
                        target=label,
                        status="skipped",
                        detail="AI suggested relationship removal but allowDrop=false",
                    )
                )
                continue

            await self._synchronizer.remove(
                RelationshipSyncRequest(source_id, target_id, type=row.type),
                model,
                sync_context,
            )
            for anchor in await find_canonical_relationships(
                self._storage, source_id, target_id, OBJECT_LEVEL
            ):
                await self._storage.delete_canonical_relationship(anchor.id)
            diff.append(
                DiffEntry(
                    action="remove_relationship",
                    layer="conceptual",
                    target=label,
                    status="applied",
                    detail="Relationship removed",
                )
            )
        return diff

    async def _sync_reference_relationships(
        self,
        layer: ModelLayer,
        layer_context: Optional[LayerContext],
        desired_entities: list[DesiredLogicalEntity],
    ) -> list[DiffEntry]:
        """Attribute `references` become referenced-key -> foreign-key relationships."""
        if layer_context is None:
            return []
        diff: list[DiffEntry] = []
        sync_context = SyncContext()

        for desired in desired_entities:
            referencing = layer_context.entity_named(desired.name)
            if referencing is None:
                continue
            for desired_attribute in desired.attributes:
                reference = desired_attribute.references
                if reference is None or not reference.entity:
                    continue
                referenced = layer_context.entity_named(reference.entity)
                foreign_key = self._attribute_named(
                    referencing, normalize_attribute_name(desired_attribute.name)
                )
                if referenced is None or foreign_key is None:
                    continue
                key = (
                    self._attribute_named(referenced, normalize_attribute_name(reference.attribute))
                    if reference.attribute
                    else next((a for a in referenced.attributes if a.is_primary_key), None)
                )
                if key is None:
                    logger.debug(
                        f"[Reconciler] No key on {referenced.object.name} for "
                        f"{referencing.object.name}.{foreign_key.name}, skipping"
                    )
                    continue

                level = AttributeLevel(key.id, foreign_key.id)
                row = next(
                    (
                        existing
                        for existing in layer_context.relationships
                        if existing.connects(referenced.object.id, referencing.object.id, level)
                    ),
                    None,
                )
                upsert = await self._synchronizer.upsert_layer_relationship(
                    layer_context.model,
                    referenced.object.id,
                    referencing.object.id,
                    level,
                    relationship_type="1:N",
                    source_handle=row.source_handle if row else None,
                    target_handle=row.target_handle if row else None,
                    name=row.name if row else None,
                    description=row.description if row else desired_attribute.description,
                    context=sync_context,
                )
                if upsert.outcome is UpsertOutcome.UNCHANGED:
                    continue
                created = upsert.outcome is UpsertOutcome.CREATED
                diff.append(
                    DiffEntry(
                        action="add_relationship" if created else "update_relationship",
                        layer=layer.value,
                        target=f"{referenced.object.name}.{key.name}->{referencing.object.name}.{foreign_key.name}",
                        status="applied",
                        detail="Relationship created" if created else "Relationship updated",
                        metadata={"type": "1:N"},
                    )
                )
        return diff

    @staticmethod
    def _attribute_named(entity: LayerEntity, name: str) -> Optional[Attribute]:
        return next(
            (a for a in entity.attributes if normalize_attribute_name(a.name) == name), None
        )

    # ==================== OUTPUT ====================
    @staticmethod
    def _format_conceptual(layer_context: Optional[LayerContext]) -> ConceptualModelView:
        if layer_context is None:
            return ConceptualModelView()
        rows = layer_context.object_level_relationships()
        return ConceptualModelView(
            entities=[
                ConceptualEntityView(
                    name=entity.object.name,
                    description=entity.object.description,
                    relationships=[
                        RelationshipView(
                            target=layer_context.name_of(row.target_object_id),
                            type=row.type,
                            description=row.description,
                        )
                        for row in rows
                        if row.source_object_id == entity.object.id
                    ],
                )
                for entity in layer_context.entities
            ]
        )

    @staticmethod
    def _format_layer(layer_context: Optional[LayerContext]) -> LayerModelView:
        if layer_context is None:
            return LayerModelView()
        return LayerModelView(
            entities=[
                LayerEntityView(
                    name=entity.object.name,
                    description=entity.object.description,
                    attributes=[
                        AttributeView(
                            name=attribute.name,
                            conceptual_type=attribute.conceptual_type,
                            logical_type=attribute.logical_type,
                            physical_type=attribute.physical_type,
                            nullable=attribute.nullable,
                            is_primary_key=attribute.is_primary_key,
                            is_foreign_key=attribute.is_foreign_key,
                            description=attribute.description,
                        )
                        for attribute in entity.attributes
                    ],
                )
                for entity in layer_context.entities
            ]
        )
