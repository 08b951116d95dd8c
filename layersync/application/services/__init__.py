"""
Synchronization engine services.

FamilyResolver, LayerReplicator and RelationshipSynchronizer are building
blocks that never lock; CascadeOrchestrator, BatchPopulationService and
DesiredStateReconciler are driven by the command handlers.
"""

from layersync.application.services.family_locks import FamilyLockRegistry
from layersync.application.services.family_resolver import FamilyResolver
from layersync.application.services.layer_replicator import LayerReplicator
from layersync.application.services.relationship_synchronizer import (
    RelationshipSynchronizer,
)
from layersync.application.services.cascade_orchestrator import CascadeOrchestrator
from layersync.application.services.batch_population import BatchPopulationService
from layersync.application.services.reconciler import DesiredStateReconciler
from layersync.application.services.sync_context import SyncContext

__all__ = [
    "FamilyLockRegistry",
    "FamilyResolver",
    "LayerReplicator",
    "RelationshipSynchronizer",
    "CascadeOrchestrator",
    "BatchPopulationService",
    "DesiredStateReconciler",
    "SyncContext",
]
