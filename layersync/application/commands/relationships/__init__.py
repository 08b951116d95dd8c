"""Relationship commands."""

from .create_relationship import CreateRelationshipCommand, CreateRelationshipHandler
from .update_relationship import UpdateRelationshipCommand, UpdateRelationshipHandler
from .delete_relationship import DeleteRelationshipCommand, DeleteRelationshipHandler

__all__ = [
    "CreateRelationshipCommand",
    "CreateRelationshipHandler",
    "UpdateRelationshipCommand",
    "UpdateRelationshipHandler",
    "DeleteRelationshipCommand",
    "DeleteRelationshipHandler",
]
