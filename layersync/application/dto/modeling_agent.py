"""Modeling agent request/response DTOs."""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from layersync.application.dto.desired_state import Issue

DiffAction = Literal[
    "create_model_family",
    "add_entity",
    "update_entity",
    "remove_entity",
    "add_attribute",
    "update_attribute",
    "remove_attribute",
    "add_relationship",
    "update_relationship",
    "remove_relationship",
]
DiffLayer = Literal["conceptual", "logical", "physical", "all"]
DiffStatus = Literal["applied", "skipped"]


class ModelingAgentRequest(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    root_model_id: Optional[int] = None
    model_name: Optional[str] = None
    business_description: str = ""
    instructions: str = ""
    allow_drop: bool = False
    target_database: Optional[str] = None


class DiffEntry(BaseModel):
    action: DiffAction
    layer: DiffLayer
    target: str
    status: DiffStatus
    detail: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class RelationshipView(BaseModel):
    target: str
    type: str
    description: Optional[str] = None


class ConceptualEntityView(BaseModel):
    name: str
    description: Optional[str] = None
    relationships: list[RelationshipView] = Field(default_factory=list)


class AttributeView(BaseModel):
    name: str
    conceptual_type: Optional[str] = None
    logical_type: Optional[str] = None
    physical_type: Optional[str] = None
    nullable: bool = True
    is_primary_key: bool = False
    is_foreign_key: bool = False
    description: Optional[str] = None


class LayerEntityView(BaseModel):
    name: str
    description: Optional[str] = None
    attributes: list[AttributeView] = Field(default_factory=list)


class ConceptualModelView(BaseModel):
    """Stored conceptual layer after reconciliation."""

    entities: list[ConceptualEntityView] = Field(default_factory=list)


class LayerModelView(BaseModel):
    """Stored logical or physical layer after reconciliation."""

    entities: list[LayerEntityView] = Field(default_factory=list)


class ModelingAgentResult(BaseModel):
    summary: str
    assumptions: list[str] = Field(default_factory=list)
    conceptual_model: ConceptualModelView = Field(default_factory=ConceptualModelView)
    logical_model: LayerModelView = Field(default_factory=LayerModelView)
    physical_model: LayerModelView = Field(default_factory=LayerModelView)
    sql: dict[str, str] = Field(default_factory=dict)
    issues: list[Issue] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    diff: list[DiffEntry] = Field(default_factory=list)
