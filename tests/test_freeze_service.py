"""Tests for FreezeService: threshold crossing, isolation, expiry, concurrency."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from freeze_guard.models.strategy_freeze import FreezeKey
from freeze_guard.services.errors import (
    DuplicateKeyError,
    FreezeValidationError,
    RecordNotFoundError,
)
from freeze_guard.services.freeze_service import make_key

START_TIME = 1_700_000_000
LIVE = ("BTCUSDT", "line3_coin6", "live")


def _losses(service, key, count):
    for _ in range(count):
        service.record_loss(*key)


# ---------------------------------------------------------------------------
# Key validation
# ---------------------------------------------------------------------------

def test_make_key_trims_and_normalises():
    assert make_key(" BTCUSDT ", "line3_coin6 ", "paper") == FreezeKey("BTCUSDT", "line3_coin6", "paper")


@pytest.mark.parametrize(
    "symbol, strategy, mode",
    [("", "s", "live"), ("BTCUSDT", "  ", "live"), ("BTCUSDT", "s", ""), ("BTCUSDT", "s", "real")],
)
def test_make_key_rejects_invalid(symbol, strategy, mode):
    with pytest.raises(FreezeValidationError):
        make_key(symbol, strategy, mode)


def test_invalid_key_never_touches_store(service):
    with pytest.raises(FreezeValidationError):
        service.record_loss("BTCUSDT", "line3_coin6", "demo")
    assert service.list_configs().total == 0


# ---------------------------------------------------------------------------
# Threshold crossing
# ---------------------------------------------------------------------------

def test_is_frozen_creates_default_record(service):
    assert service.is_frozen(*LIVE) is False
    assert service.list_configs().total == 1


def test_four_losses_do_not_freeze(service):
    _losses(service, LIVE, 4)

    record = service.get_freeze_config(*LIVE)
    assert record.loss_count == 4
    assert record.frozen_until == 0
    assert service.is_frozen(*LIVE) is False


def test_fifth_loss_freezes_for_duration(service):
    _losses(service, LIVE, 5)

    record = service.get_freeze_config(*LIVE)
    assert record.loss_count == 5
    assert record.frozen_until == START_TIME + 86400
    assert service.is_frozen(*LIVE) is True
    assert service.remaining_freeze_seconds(*LIVE) == 86400


def test_losses_while_frozen_do_not_extend(service, clock):
    _losses(service, LIVE, 5)
    clock.advance(3600)
    record = service.record_loss(*LIVE)

    assert record.loss_count == 6
    assert record.frozen_until == START_TIME + 86400
    assert service.remaining_freeze_seconds(*LIVE) == 86400 - 3600


def test_freeze_is_isolated_per_key(service):
    _losses(service, LIVE, 5)

    assert service.is_frozen(*LIVE) is True
    assert service.is_frozen("BTCUSDT", "line3_coin6", "paper") is False
    assert service.is_frozen("BTCUSDT", "trend_follow", "live") is False
    assert service.is_frozen("ETHUSDT", "line3_coin6", "live") is False


# ---------------------------------------------------------------------------
# Profit, manual actions, expiry
# ---------------------------------------------------------------------------

def test_profit_resets_count_but_keeps_freeze(service):
    _losses(service, LIVE, 5)
    record = service.record_profit(*LIVE)

    assert record.loss_count == 0
    assert record.frozen_until == START_TIME + 86400
    assert service.is_frozen(*LIVE) is True


def test_profit_breaks_loss_streak(service):
    _losses(service, LIVE, 4)
    service.record_profit(*LIVE)
    _losses(service, LIVE, 4)
    assert service.is_frozen(*LIVE) is False


def test_manual_unfreeze_keeps_loss_count(service):
    _losses(service, LIVE, 5)
    record = service.unfreeze_manually(*LIVE)

    assert record.frozen_until == 0
    assert record.loss_count == 5
    assert service.is_frozen(*LIVE) is False


def test_reset_loss_count_keeps_freeze(service):
    _losses(service, LIVE, 5)
    record = service.reset_loss_count(*LIVE)

    assert record.loss_count == 0
    assert service.is_frozen(*LIVE) is True


def test_expiry_needs_no_event(service, clock):
    _losses(service, LIVE, 5)
    clock.advance(86400 + 1)

    assert service.is_frozen(*LIVE) is False
    assert service.remaining_freeze_seconds(*LIVE) == 0
    assert service.get_freeze_config(*LIVE).frozen_until == START_TIME + 86400


def test_loss_after_expiry_without_reset_does_not_refreeze(service, clock):
    _losses(service, LIVE, 5)
    clock.advance(86400 + 1)
    record = service.record_loss(*LIVE)

    assert record.loss_count == 6
    assert service.is_frozen(*LIVE) is False


def test_reset_then_losses_refreeze_after_expiry(service, clock):
    _losses(service, LIVE, 5)
    clock.advance(86400 + 1)
    service.reset_loss_count(*LIVE)
    _losses(service, LIVE, 5)

    assert service.is_frozen(*LIVE) is True
    assert service.remaining_freeze_seconds(*LIVE) == 86400


def test_reset_then_losses_refreeze_within_window(service, clock):
    _losses(service, LIVE, 5)
    clock.advance(3600)
    service.record_profit(*LIVE)
    record = None
    for _ in range(5):
        record = service.record_loss(*LIVE)

    assert record.loss_count == 5
    assert record.frozen_until == START_TIME + 3600 + 86400
    assert service.remaining_freeze_seconds(*LIVE) == 86400


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------

def test_concurrent_losses_are_all_counted(service):
    service.upsert_config(*LIVE, freeze_threshold=50)

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda _: service.record_loss(*LIVE), range(40)))

    record = service.get_freeze_config(*LIVE)
    assert record.loss_count == 40
    assert record.frozen_until == 0
    assert len(service.locks) == 0


def test_concurrent_losses_on_fresh_key_freeze_once(service):
    with ThreadPoolExecutor(max_workers=5) as pool:
        results = list(pool.map(lambda _: service.record_loss(*LIVE), range(5)))

    record = service.get_freeze_config(*LIVE)
    assert record.loss_count == 5
    assert record.frozen_until == START_TIME + 86400
    assert sum(1 for r in results if r.loss_count == 5) == 1
    assert service.list_configs().total == 1


# ---------------------------------------------------------------------------
# Admin paths
# ---------------------------------------------------------------------------

def test_upsert_creates_with_overrides(service):
    record, created = service.upsert_config(*LIVE, freeze_threshold=3, freeze_duration_hours=2)

    assert created is True
    assert record.freeze_threshold == 3
    assert record.freeze_duration_hours == 2
    _losses(service, LIVE, 3)
    assert service.remaining_freeze_seconds(*LIVE) == 7200


def test_upsert_updates_existing(service, clock):
    service.record_loss(*LIVE)
    clock.advance(10)
    record, created = service.upsert_config(*LIVE, freeze_threshold=8, frozen_until=START_TIME + 500)

    assert created is False
    assert record.freeze_threshold == 8
    assert record.freeze_duration_hours == 24
    assert record.loss_count == 1
    assert record.frozen_until == START_TIME + 500
    assert record.updated_at == START_TIME + 10


def test_upsert_ignores_out_of_range_overrides(service):
    service.record_loss(*LIVE)
    record, _ = service.upsert_config(
        *LIVE, freeze_threshold=0, freeze_duration_hours=-1, loss_count=-1, frozen_until=0,
    )
    stored = service.get_freeze_config(*LIVE)
    assert stored.freeze_threshold == 5
    assert stored.freeze_duration_hours == 24
    assert stored.loss_count == 1
    assert record.loss_count == 1


def test_upsert_rejects_deadline_before_creation(service):
    with pytest.raises(FreezeValidationError):
        service.upsert_config(*LIVE, frozen_until=1)
    assert service.is_frozen(*LIVE) is False


def test_upsert_existing_rejects_deadline_before_creation(service, clock):
    service.record_loss(*LIVE)
    clock.advance(10)
    with pytest.raises(FreezeValidationError):
        service.upsert_config(*LIVE, freeze_threshold=2, frozen_until=START_TIME - 1)

    stored = service.get_freeze_config(*LIVE)
    assert stored.frozen_until == 0
    assert stored.freeze_threshold == 5


def test_upsert_can_zero_loss_count(service):
    _losses(service, LIVE, 3)
    service.upsert_config(*LIVE, loss_count=0)
    assert service.get_freeze_config(*LIVE).loss_count == 0


def test_list_configs_clamps(service):
    service.get_freeze_config(*LIVE)
    result = service.list_configs(page=0, page_size=1000)
    assert (result.page, result.page_size, result.total) == (1, 20, 1)


def test_edit_by_id_overwrites(service):
    record = service.get_freeze_config(*LIVE)
    edited = service.edit_by_id(record.id, {
        "symbol": "BTCUSDT", "strategy_name": "line3_coin6", "trade_mode": "live",
        "loss_count": 2, "freeze_threshold": 3, "freeze_duration_hours": 1, "frozen_until": 0,
    })
    assert edited.id == record.id
    assert edited.freeze_threshold == 3
    service.record_loss(*LIVE)
    assert service.is_frozen(*LIVE) is True


def test_edit_by_id_validation(service):
    record = service.get_freeze_config(*LIVE)
    with pytest.raises(FreezeValidationError):
        service.edit_by_id(record.id, {
            "symbol": "BTCUSDT", "strategy_name": "line3_coin6", "trade_mode": "live",
            "freeze_threshold": 0,
        })


def test_edit_by_id_rejects_deadline_before_creation(service):
    record = service.get_freeze_config(*LIVE)
    with pytest.raises(FreezeValidationError):
        service.edit_by_id(record.id, {
            "symbol": "BTCUSDT", "strategy_name": "line3_coin6", "trade_mode": "live",
            "freeze_threshold": 5, "freeze_duration_hours": 24, "frozen_until": 1,
        })
    assert service.get_freeze_config(*LIVE).frozen_until == 0


def _stale_first_read(service, monkeypatch, stale):
    """Make the next get_by_id return ``stale``; later calls hit the database."""
    real_get = service.store.get_by_id
    pending = [stale]

    def get_by_id(record_id):
        if pending:
            return pending.pop()
        return real_get(record_id)

    monkeypatch.setattr(service.store, "get_by_id", get_by_id)


def _record_holds(service, monkeypatch):
    held = []
    real_hold = service.locks.hold

    def hold(*keys):
        held.append(set(keys))
        return real_hold(*keys)

    monkeypatch.setattr(service.locks, "hold", hold)
    return held


def test_edit_by_id_relocks_when_key_moves_before_lock(service, monkeypatch):
    record = service.get_freeze_config(*LIVE)
    stale = service.store.get_by_id(record.id)
    # Another editor moves the row to a new key between our read and our lock
    service.store.overwrite(record.id, {"symbol": "ETHUSDT", "strategy_name": "line3_coin6", "trade_mode": "live"})
    moved = FreezeKey("ETHUSDT", "line3_coin6", "live")
    paper = FreezeKey("BTCUSDT", "line3_coin6", "paper")

    _stale_first_read(service, monkeypatch, stale)
    held = _record_holds(service, monkeypatch)
    edited = service.edit_by_id(record.id, {**paper._asdict(), "freeze_threshold": 3})

    assert held == [{FreezeKey(*LIVE), paper}, {moved, paper}]
    assert edited.key == paper
    assert edited.freeze_threshold == 3
    assert len(service.locks) == 0


def test_delete_by_id_relocks_when_key_moves_before_lock(service, monkeypatch):
    record = service.get_freeze_config(*LIVE)
    stale = service.store.get_by_id(record.id)
    service.store.overwrite(record.id, {"symbol": "ETHUSDT", "strategy_name": "line3_coin6", "trade_mode": "live"})

    _stale_first_read(service, monkeypatch, stale)
    held = _record_holds(service, monkeypatch)
    service.delete_by_id(record.id)

    assert held == [{FreezeKey(*LIVE)}, {FreezeKey("ETHUSDT", "line3_coin6", "live")}]
    assert service.list_configs().total == 0


def test_edit_by_id_missing(service):
    with pytest.raises(RecordNotFoundError):
        service.edit_by_id(999, {"symbol": "BTCUSDT", "strategy_name": "s", "trade_mode": "live"})


def test_edit_by_id_duplicate_key(service):
    service.get_freeze_config(*LIVE)
    other = service.get_freeze_config("BTCUSDT", "line3_coin6", "paper")
    with pytest.raises(DuplicateKeyError):
        service.edit_by_id(other.id, {"symbol": "BTCUSDT", "strategy_name": "line3_coin6", "trade_mode": "live"})


def test_delete_by_id(service):
    record = service.get_freeze_config(*LIVE)
    service.delete_by_id(record.id)
    assert service.list_configs().total == 0
    with pytest.raises(RecordNotFoundError):
        service.delete_by_id(record.id)
