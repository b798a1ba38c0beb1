"""Reconciliation engine: decides when to poll an alert and what changed."""

from .cadence import CadencePolicy, age_seconds, is_eligible, polling_decision
from .guard import RUNWAY, RunwayGuard
from .reconciler import Reconciler, resolve_build_tag

__all__ = [
    "CadencePolicy",
    "RUNWAY",
    "Reconciler",
    "RunwayGuard",
    "age_seconds",
    "is_eligible",
    "polling_decision",
    "resolve_build_tag",
]
