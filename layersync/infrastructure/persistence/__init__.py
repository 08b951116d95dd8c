"""
Persistence Layer - Storage implementations.

Contains the in-memory and Prisma implementations of ModelingStorage.
"""

from layersync.infrastructure.persistence.in_memory_modeling_storage import (
    InMemoryModelingStorage,
)
from layersync.infrastructure.persistence.prisma_modeling_storage import (
    PrismaModelingStorage,
)

__all__ = [
    "InMemoryModelingStorage",
    "PrismaModelingStorage",
]
