"""Desired-state reconciliation (AI modeling agent)."""

from layersync.application.services.reconciler.desired_state_reconciler import (
    DesiredStateReconciler,
    normalize_relationship,
)

__all__ = ["DesiredStateReconciler", "normalize_relationship"]
