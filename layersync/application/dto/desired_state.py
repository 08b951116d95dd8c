"""
Desired-state schema returned by the modeling agent.

The same models define the JSON schema sent to the provider
(`desired_state_json_schema`) and validate the response
(`parse_desired_state`). Unknown keys are rejected. Field names are
camelCase on the wire.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from layersync.domain.exceptions import DesiredStateSchemaError

Cardinality = Literal["1:1", "1:N", "N:1", "N:M", "M:N"]
Severity = Literal["info", "warning", "error"]


class _WireModel(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class DesiredRelationship(_WireModel):
    target: str
    type: Cardinality = "1:N"
    description: Optional[str] = None
    verb: Optional[str] = None


class DesiredConceptualEntity(_WireModel):
    name: str
    description: Optional[str] = None
    aliases: list[str] = Field(default_factory=list)
    relationships: list[DesiredRelationship] = Field(default_factory=list)


class AttributeReference(_WireModel):
    entity: Optional[str] = None
    attribute: Optional[str] = None


class DesiredAttribute(_WireModel):
    name: str
    conceptual_type: Optional[str] = None
    logical_type: Optional[str] = None
    physical_type: Optional[str] = None
    nullable: bool = True
    is_primary_key: bool = False
    is_foreign_key: bool = False
    description: Optional[str] = None
    references: Optional[AttributeReference] = None
    unique: bool = False


class DesiredLogicalEntity(_WireModel):
    name: str
    description: Optional[str] = None
    aliases: list[str] = Field(default_factory=list)
    attributes: list[DesiredAttribute] = Field(default_factory=list)


class DesiredConceptualModel(_WireModel):
    entities: list[DesiredConceptualEntity] = Field(default_factory=list)


class DesiredLogicalModel(_WireModel):
    entities: list[DesiredLogicalEntity] = Field(default_factory=list)


class Issue(_WireModel):
    severity: Severity = "warning"
    message: str
    entity: Optional[str] = None


class DesiredState(_WireModel):
    summary: str
    assumptions: list[str] = Field(default_factory=list)
    conceptual_model: DesiredConceptualModel
    logical_model: DesiredLogicalModel
    physical_model: DesiredLogicalModel
    sql: dict[str, str] = Field(default_factory=dict)
    issues: list[Issue] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)


def desired_state_json_schema() -> dict[str, Any]:
    """response_format payload for structured output."""
    return {
        "type": "json_schema",
        "json_schema": {
            "name": "modeling_agent_response",
            "schema": DesiredState.model_json_schema(by_alias=True),
        },
    }


def parse_desired_state(raw: Optional[str]) -> DesiredState:
    """Parse-or-fail boundary for generative output."""
    try:
        return DesiredState.model_validate_json(raw or "")
    except ValidationError as e:
        details = e.errors(include_url=False)
        raise DesiredStateSchemaError(
            f"Failed to parse AI modeling response: {e.error_count()} validation error(s)",
            details=[
                {"loc": list(error["loc"]), "msg": error["msg"], "type": error["type"]}
                for error in details
            ],
        ) from e
