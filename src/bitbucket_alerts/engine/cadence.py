"""Polling cadence: how often an alert is refreshed given how long it has been quiet.

Tiers are aligned to the wall clock rather than per-alert timers, so one
shared scheduler tick can serve any number of alerts:

    age < fast            poll on every tick
    fast <= age < slow    poll when minute-of-hour % medium_minute_step == 0
    slow <= age < retire  poll at minute 0 only
    age >= retire         stop polling, the alert is stale
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

POLL = "poll"
WAIT = "wait"
STALE = "stale"


@dataclass(frozen=True)
class CadencePolicy:
    fast_seconds: float = 3600
    slow_seconds: float = 43200
    retire_seconds: float = 2_592_000
    medium_minute_step: int = 5

    @classmethod
    def from_config(cls, config: dict) -> "CadencePolicy":
        cadence = config.get("cadence", {})
        defaults = cls()
        return cls(
            fast_seconds=float(cadence.get("fast_seconds", defaults.fast_seconds)),
            slow_seconds=float(cadence.get("slow_seconds", defaults.slow_seconds)),
            retire_seconds=float(cadence.get("retire_seconds", defaults.retire_seconds)),
            medium_minute_step=max(1, int(cadence.get("medium_minute_step", defaults.medium_minute_step))),
        )


DEFAULT_POLICY = CadencePolicy()


def age_seconds(last_change: datetime | None, now: datetime) -> float:
    """Seconds since ``last_change``. A missing or future timestamp counts as 0."""
    if last_change is None:
        return 0.0
    return max(0.0, (now - last_change).total_seconds())


def polling_decision(age: float, minute: int, policy: CadencePolicy = DEFAULT_POLICY) -> str:
    if age < policy.fast_seconds:
        return POLL
    if age < policy.slow_seconds:
        return POLL if minute % policy.medium_minute_step == 0 else WAIT
    if age < policy.retire_seconds:
        return POLL if minute == 0 else WAIT
    return STALE


def is_eligible(age: float, minute: int, policy: CadencePolicy = DEFAULT_POLICY) -> bool:
    return polling_decision(age, minute, policy) == POLL
