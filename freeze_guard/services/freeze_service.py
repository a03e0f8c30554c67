"""Strategy freeze service: loss counting and cooldowns per (symbol, strategy, mode).

Trading loops call record_loss / record_profit after each closed trade and
is_frozen before opening a new position. Every mutation runs
lock → read-or-create → next_state → partial update, with the lock held for
the whole cycle so concurrent reports on one key are never lost.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable

from freeze_guard.models.strategy_freeze import FreezeKey, StrategyFreeze
from freeze_guard.services import freeze_engine
from freeze_guard.services.errors import FreezeError, FreezeValidationError, RecordNotFoundError
from freeze_guard.services.freeze_engine import FreezeEvent
from freeze_guard.services.freeze_store import FreezeStore, normalize_page
from freeze_guard.services.key_locks import KeyLockRegistry
from freeze_guard.utils.clock import unix_now
from freeze_guard.utils.constants import TradeMode

logger = logging.getLogger(__name__)


@dataclass
class FreezePage:
    records: list[StrategyFreeze]
    total: int
    page: int
    page_size: int


def make_key(symbol: str, strategy_name: str, trade_mode: str | TradeMode) -> FreezeKey:
    """Validate and normalise the three key fields."""
    symbol = (symbol or "").strip()
    strategy_name = (strategy_name or "").strip()
    mode = trade_mode.value if isinstance(trade_mode, TradeMode) else (trade_mode or "").strip()
    if not symbol or not strategy_name or not mode:
        raise FreezeValidationError("symbol, strategy_name and trade_mode must not be empty")
    try:
        mode = TradeMode(mode).value
    except ValueError:
        allowed = ", ".join(m.value for m in TradeMode)
        raise FreezeValidationError(f"trade_mode must be one of: {allowed}") from None
    return FreezeKey(symbol, strategy_name, mode)


def _check_deadline(frozen_until: int, record: StrategyFreeze):
    """A freeze deadline set by hand must not predate the record itself."""
    if frozen_until < record.created_at:
        raise FreezeValidationError(
            f"frozen_until={frozen_until} is before the record was created ({record.created_at})"
        )


class FreezeService:
    def __init__(
        self,
        store: FreezeStore,
        locks: KeyLockRegistry | None = None,
        clock: Callable[[], int] = unix_now,
    ):
        self.store = store
        self.locks = locks if locks is not None else KeyLockRegistry()
        self._clock = clock

    def now(self) -> int:
        return self._clock()

    def _apply_event(self, key: FreezeKey, event: FreezeEvent) -> StrategyFreeze:
        with self.locks.hold(key):
            record = self.store.get_or_create_default(key)
            transition = freeze_engine.next_state(record, event, self._clock())
            freeze_engine.apply(record, transition)
            try:
                self.store.update_fields(record, *transition.fields)
            except FreezeError as e:
                logger.error(f"[{key}] Failed to persist {event.value}: {e}")
                raise

        if transition.triggered_freeze:
            logger.info(
                f"[{key}] Freeze triggered: {record.loss_count} losses, "
                f"frozen until {record.frozen_until}"
            )
        return record

    # -- trading loop ------------------------------------------------------

    def is_frozen(self, symbol: str, strategy_name: str, trade_mode: str) -> bool:
        """True while the key's cooldown is running. Creates a default row on first use."""
        record = self.get_freeze_config(symbol, strategy_name, trade_mode)
        return freeze_engine.is_frozen(record, self._clock())

    def remaining_freeze_seconds(self, symbol: str, strategy_name: str, trade_mode: str) -> int:
        record = self.get_freeze_config(symbol, strategy_name, trade_mode)
        return freeze_engine.remaining_seconds(record, self._clock())

    def record_loss(self, symbol: str, strategy_name: str, trade_mode: str) -> StrategyFreeze:
        key = make_key(symbol, strategy_name, trade_mode)
        record = self._apply_event(key, FreezeEvent.LOSS)
        logger.info(f"[{key}] Loss recorded: {record.loss_count}/{record.freeze_threshold}")
        return record

    def record_profit(self, symbol: str, strategy_name: str, trade_mode: str) -> StrategyFreeze:
        """Clear the loss streak. An active freeze keeps running."""
        key = make_key(symbol, strategy_name, trade_mode)
        record = self._apply_event(key, FreezeEvent.PROFIT)
        logger.info(f"[{key}] Profit recorded, loss count cleared")
        return record

    # -- admin -------------------------------------------------------------

    def get_freeze_config(self, symbol: str, strategy_name: str, trade_mode: str) -> StrategyFreeze:
        return self.store.get_or_create_default(make_key(symbol, strategy_name, trade_mode))

    def unfreeze_manually(self, symbol: str, strategy_name: str, trade_mode: str) -> StrategyFreeze:
        key = make_key(symbol, strategy_name, trade_mode)
        record = self._apply_event(key, FreezeEvent.MANUAL_UNFREEZE)
        logger.info(f"[{key}] Unfrozen manually")
        return record

    def reset_loss_count(self, symbol: str, strategy_name: str, trade_mode: str) -> StrategyFreeze:
        key = make_key(symbol, strategy_name, trade_mode)
        record = self._apply_event(key, FreezeEvent.MANUAL_RESET)
        logger.info(f"[{key}] Loss count reset")
        return record

    def upsert_config(
        self,
        symbol: str,
        strategy_name: str,
        trade_mode: str,
        freeze_threshold: int | None = None,
        freeze_duration_hours: int | None = None,
        loss_count: int | None = None,
        frozen_until: int | None = None,
    ) -> tuple[StrategyFreeze, bool]:
        """Create the key's record if needed, then apply the given overrides.

        Threshold and duration apply when positive, loss_count when >= 0,
        frozen_until when positive. Returns ``(record, created)``.
        """
        key = make_key(symbol, strategy_name, trade_mode)
        with self.locks.hold(key):
            created = self.store.get_by_key(key) is None
            record = self.store.get_or_create_default(key)

            changed = []
            if freeze_threshold is not None and freeze_threshold > 0:
                record.freeze_threshold = freeze_threshold
                changed.append("freeze_threshold")
            if freeze_duration_hours is not None and freeze_duration_hours > 0:
                record.freeze_duration_hours = freeze_duration_hours
                changed.append("freeze_duration_hours")
            if loss_count is not None and loss_count >= 0:
                record.loss_count = loss_count
                changed.append("loss_count")
            if frozen_until is not None and frozen_until > 0:
                _check_deadline(frozen_until, record)
                record.frozen_until = frozen_until
                changed.append("frozen_until")
            record.updated_at = self._clock()
            changed.append("updated_at")

            try:
                self.store.update_fields(record, *changed)
            except FreezeError as e:
                logger.error(f"[{key}] Failed to save freeze config: {e}")
                raise

        logger.info(
            f"[{key}] Freeze config {'created' if created else 'updated'}: "
            f"threshold={record.freeze_threshold}, hours={record.freeze_duration_hours}"
        )
        return record, created

    def list_configs(self, page: int = 1, page_size: int = 20) -> FreezePage:
        page, page_size = normalize_page(page, page_size)
        records, total = self.store.list_page(page, page_size)
        return FreezePage(records=records, total=total, page=page, page_size=page_size)

    def _get_existing(self, record_id: int) -> StrategyFreeze:
        record = self.store.get_by_id(record_id)
        if record is None:
            raise RecordNotFoundError(f"Freeze record id={record_id} not found")
        return record

    def edit_by_id(self, record_id: int, values: dict[str, Any]) -> StrategyFreeze:
        """Overwrite a record by id. The key may change; both old and new keys are locked."""
        new_key = make_key(values.get("symbol"), values.get("strategy_name"), values.get("trade_mode"))
        for name in ("freeze_threshold", "freeze_duration_hours"):
            if name in values and values[name] <= 0:
                raise FreezeValidationError(f"{name} must be positive")
        for name in ("loss_count", "frozen_until"):
            if name in values and values[name] < 0:
                raise FreezeValidationError(f"{name} must not be negative")

        payload = {**values, **new_key._asdict()}
        while True:
            current = self._get_existing(record_id)
            with self.locks.hold(current.key, new_key):
                # The key may have been edited between the read and the lock.
                locked = self._get_existing(record_id)
                if locked.key != current.key:
                    continue
                if payload.get("frozen_until"):
                    _check_deadline(payload["frozen_until"], locked)
                record = self.store.overwrite(record_id, payload)
                break

        logger.info(f"[{new_key}] Freeze config id={record_id} overwritten")
        return record

    def delete_by_id(self, record_id: int):
        while True:
            current = self._get_existing(record_id)
            with self.locks.hold(current.key):
                if self._get_existing(record_id).key != current.key:
                    continue
                self.store.delete_by_id(record_id)
                break

        logger.info(f"[{current.key}] Freeze config id={record_id} deleted")
