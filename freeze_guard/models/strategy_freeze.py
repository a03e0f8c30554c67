"""StrategyFreeze model: loss counter and cooldown for one (symbol, strategy, mode) key."""

from typing import NamedTuple

from sqlalchemy import BigInteger, Column, UniqueConstraint
from sqlmodel import SQLModel, Field

KEY_COLUMNS = ("symbol", "strategy_name", "trade_mode")


class FreezeKey(NamedTuple):
    symbol: str
    strategy_name: str
    trade_mode: str  # TradeMode value

    def __str__(self) -> str:
        return f"{self.symbol}-{self.strategy_name}-{self.trade_mode}"


class StrategyFreeze(SQLModel, table=True):
    __tablename__ = "strategy_freeze"
    __table_args__ = (
        UniqueConstraint(*KEY_COLUMNS, name="uq_strategy_freeze_key"),
    )

    id: int | None = Field(default=None, primary_key=True)
    symbol: str = Field(index=True, max_length=32)  # e.g. "BTCUSDT"
    strategy_name: str = Field(index=True, max_length=64)
    trade_mode: str = Field(max_length=8)  # "live" or "paper"

    loss_count: int = 0  # consecutive losses since the last reset
    freeze_threshold: int = 5
    freeze_duration_hours: int = 24

    # Unix seconds; 0 = never frozen. Frozen while frozen_until > now.
    frozen_until: int = Field(default=0, sa_column=Column(BigInteger, nullable=False, default=0))
    created_at: int = Field(default=0, sa_column=Column(BigInteger, nullable=False, default=0))
    updated_at: int = Field(default=0, sa_column=Column(BigInteger, nullable=False, default=0, index=True))

    @property
    def key(self) -> FreezeKey:
        return FreezeKey(self.symbol, self.strategy_name, self.trade_mode)
