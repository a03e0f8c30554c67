"""Database models."""

from freeze_guard.models.strategy_freeze import FreezeKey, StrategyFreeze

__all__ = [
    "FreezeKey",
    "StrategyFreeze",
]
