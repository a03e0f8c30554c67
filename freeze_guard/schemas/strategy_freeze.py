"""Pydantic schemas for the strategy freeze API."""

from pydantic import BaseModel, Field, field_validator

from freeze_guard.utils.constants import TradeMode


class FreezeKeyIn(BaseModel):
    symbol: str = Field(min_length=1, max_length=32)
    strategy_name: str = Field(min_length=1, max_length=64)
    trade_mode: TradeMode

    @field_validator("symbol", "strategy_name")
    @classmethod
    def _trim_required_text(cls, value: str) -> str:
        text = value.strip()
        if not text:
            raise ValueError("must not be empty")
        return text


class FreezeUpsert(FreezeKeyIn):
    # Non-positive threshold/duration fall back to the configured defaults
    freeze_threshold: int = 0
    freeze_duration_hours: int = 0
    loss_count: int | None = None  # applied when >= 0
    frozen_until: int | None = None  # applied when > 0


class FreezeEdit(FreezeKeyIn):
    loss_count: int = Field(default=0, ge=0)
    freeze_threshold: int = Field(gt=0)
    freeze_duration_hours: int = Field(gt=0)
    frozen_until: int = Field(default=0, ge=0)


class FreezeRecordRead(BaseModel):
    id: int
    symbol: str
    strategy_name: str
    trade_mode: str
    loss_count: int
    freeze_threshold: int
    freeze_duration_hours: int
    frozen_until: int
    created_at: int
    updated_at: int

    model_config = {"from_attributes": True}


class FreezePageRead(BaseModel):
    items: list[FreezeRecordRead]  # frozen_until holds seconds remaining
    total: int
    page: int
    page_size: int


class FreezeDetailRead(BaseModel):
    config: FreezeRecordRead
    is_frozen: bool
    remaining_seconds: int


class FreezeUpsertResult(BaseModel):
    created: bool
    record: FreezeRecordRead


class FreezeOptionsRead(BaseModel):
    symbols: list[str]
    strategy_names: list[str]
    trade_modes: dict[str, str]
