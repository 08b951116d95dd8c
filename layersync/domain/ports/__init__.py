"""
PORTS - Interfaces that infrastructure implements

- repositories/modeling_storage.py -> persistence of models, objects,
  attributes and relationships
- desired_state_generator.py       -> generative model producing a desired state
- model_exporter.py                -> optional DDL rendering of a physical model
"""

from layersync.domain.ports.repositories import ModelingStorage
from layersync.domain.ports.desired_state_generator import (
    DesiredStateGenerator,
    DesiredStatePrompt,
)
from layersync.domain.ports.model_exporter import ModelExporter

__all__ = [
    "ModelingStorage",
    "DesiredStateGenerator",
    "DesiredStatePrompt",
    "ModelExporter",
]
