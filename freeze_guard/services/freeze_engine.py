"""Freeze state transitions.

Pure functions over a StrategyFreeze record: given the current row, an event
and the current unix time, compute which columns change. Nothing here touches
the database or mutates its input; the service applies and persists the
result under the key's lock.

The only rule that freezes a key is a loss that moves ``loss_count`` from
below the threshold to the threshold. Later losses keep counting without
touching ``frozen_until``; the key can freeze again, pushing the deadline
forward, only once the counter has been cleared and climbs back. A profit
only clears the counter.
"""

from dataclasses import dataclass, field
from enum import Enum

from freeze_guard.models.strategy_freeze import StrategyFreeze
from freeze_guard.utils.constants import SECONDS_PER_HOUR


class FreezeEvent(str, Enum):
    LOSS = "loss"
    PROFIT = "profit"
    MANUAL_UNFREEZE = "manual_unfreeze"
    MANUAL_RESET = "manual_reset"


@dataclass(frozen=True)
class Transition:
    event: FreezeEvent
    changes: dict[str, int] = field(default_factory=dict)
    triggered_freeze: bool = False

    @property
    def fields(self) -> tuple[str, ...]:
        return tuple(self.changes)


def is_frozen(record: StrategyFreeze, now: int) -> bool:
    return record.frozen_until > now


def remaining_seconds(record: StrategyFreeze, now: int) -> int:
    return max(0, record.frozen_until - now)


def next_state(record: StrategyFreeze, event: FreezeEvent, now: int) -> Transition:
    """Compute the column changes ``event`` causes on ``record`` at ``now``."""
    if event == FreezeEvent.LOSS:
        loss_count = record.loss_count + 1
        changes = {"loss_count": loss_count, "updated_at": now}
        if record.loss_count < record.freeze_threshold <= loss_count:
            changes["frozen_until"] = now + record.freeze_duration_hours * SECONDS_PER_HOUR
            return Transition(event, changes, triggered_freeze=True)
        return Transition(event, changes)

    if event in (FreezeEvent.PROFIT, FreezeEvent.MANUAL_RESET):
        return Transition(event, {"loss_count": 0, "updated_at": now})

    if event == FreezeEvent.MANUAL_UNFREEZE:
        return Transition(event, {"frozen_until": 0, "updated_at": now})

    raise ValueError(f"Unknown freeze event: {event!r}")


def apply(record: StrategyFreeze, transition: Transition) -> StrategyFreeze:
    """Copy a transition's changes onto ``record`` and return it."""
    for name, value in transition.changes.items():
        setattr(record, name, value)
    return record
