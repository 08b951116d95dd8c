"""Model family commands."""

from .create_model_family import CreateModelFamilyCommand, CreateModelFamilyHandler

__all__ = [
    "CreateModelFamilyCommand",
    "CreateModelFamilyHandler",
]
