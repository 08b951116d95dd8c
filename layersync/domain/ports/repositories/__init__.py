"""
REPOSITORY PORTS - Data persistence interfaces

Infrastructure layer provides implementations (in-memory, Prisma).
"""

from layersync.domain.ports.repositories.modeling_storage import ModelingStorage

__all__ = [
    "ModelingStorage",
]
