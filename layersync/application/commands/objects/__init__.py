"""Object commands."""

from .create_object import CreateObjectWithCascadeCommand, CreateObjectWithCascadeHandler
from .delete_object import DeleteObjectCascadeCommand, DeleteObjectCascadeHandler

__all__ = [
    "CreateObjectWithCascadeCommand",
    "CreateObjectWithCascadeHandler",
    "DeleteObjectCascadeCommand",
    "DeleteObjectCascadeHandler",
]
