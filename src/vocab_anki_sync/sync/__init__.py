"""Reconciliation of local notes with Anki."""

from .planner import SyncAction, SyncPlan, plan_sync
from .reconciler import ReconciliationEngine

__all__ = ["ReconciliationEngine", "SyncAction", "SyncPlan", "plan_sync"]
