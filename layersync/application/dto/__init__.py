"""Data Transfer Objects crossing the application boundary."""

from layersync.application.dto.cascade import (
    AttributeInput,
    CascadeRelationshipResult,
    CreateObjectRequest,
    CreateObjectResult,
    DeleteObjectResult,
    LayerConfigs,
    LayerCreationResult,
    ModelObjectConfig,
    ObjectPayload,
    RelationshipInput,
)
from layersync.application.dto.relationships import (
    LayerUpsert,
    RelationshipRemovalResult,
    RelationshipSyncRequest,
    RelationshipSyncResult,
    UpsertOutcome,
)
from layersync.application.dto.models import CreateModelFamilyResult, PopulationResult
from layersync.application.dto.desired_state import (
    DesiredState,
    Issue,
    desired_state_json_schema,
    parse_desired_state,
)
from layersync.application.dto.modeling_agent import (
    DiffEntry,
    ModelingAgentRequest,
    ModelingAgentResult,
)

__all__ = [
    "AttributeInput",
    "CascadeRelationshipResult",
    "CreateObjectRequest",
    "CreateObjectResult",
    "DeleteObjectResult",
    "LayerConfigs",
    "LayerCreationResult",
    "ModelObjectConfig",
    "ObjectPayload",
    "RelationshipInput",
    "LayerUpsert",
    "RelationshipRemovalResult",
    "RelationshipSyncRequest",
    "RelationshipSyncResult",
    "UpsertOutcome",
    "CreateModelFamilyResult",
    "PopulationResult",
    "DesiredState",
    "Issue",
    "desired_state_json_schema",
    "parse_desired_state",
    "DiffEntry",
    "ModelingAgentRequest",
    "ModelingAgentResult",
]
