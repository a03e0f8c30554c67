"""Keyed storage for strategy_freeze rows.

Every call opens its own short session on the shared engine. SQLAlchemy
failures surface as StoreError; a key miss is ``None`` rather than an error.
The store does not serialise read-modify-write cycles, that is the service's
job (see key_locks).
"""

import logging
from typing import Any, Callable

from sqlalchemy import update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select, func

from freeze_guard.models.strategy_freeze import FreezeKey, StrategyFreeze
from freeze_guard.services.errors import DuplicateKeyError, RecordNotFoundError, StoreError
from freeze_guard.utils.clock import unix_now
from freeze_guard.utils.constants import (
    DEFAULT_FREEZE_HOURS,
    DEFAULT_FREEZE_THRESHOLD,
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
)

logger = logging.getLogger(__name__)

# Columns update_fields may touch; the key columns are never partially updated
UPDATABLE_FIELDS = frozenset({
    "loss_count",
    "frozen_until",
    "freeze_threshold",
    "freeze_duration_hours",
    "updated_at",
})
EDITABLE_FIELDS = (
    "symbol",
    "strategy_name",
    "trade_mode",
    "loss_count",
    "freeze_threshold",
    "freeze_duration_hours",
    "frozen_until",
)
DISTINCT_FIELDS = frozenset({"symbol", "strategy_name"})


def normalize_page(page: int, page_size: int) -> tuple[int, int]:
    """Clamp paging arguments: page below 1 becomes 1, a size outside 1..100 becomes 20."""
    if page < 1:
        page = 1
    if page_size < 1 or page_size > MAX_PAGE_SIZE:
        page_size = DEFAULT_PAGE_SIZE
    return page, page_size


class FreezeStore:
    def __init__(
        self,
        engine: Engine,
        default_threshold: int = DEFAULT_FREEZE_THRESHOLD,
        default_duration_hours: int = DEFAULT_FREEZE_HOURS,
        clock: Callable[[], int] = unix_now,
    ):
        self.engine = engine
        self.default_threshold = default_threshold
        self.default_duration_hours = default_duration_hours
        self._clock = clock

    def _session(self) -> Session:
        return Session(self.engine, expire_on_commit=False)

    # -- lookups -----------------------------------------------------------

    def get_by_key(self, key: FreezeKey) -> StrategyFreeze | None:
        stmt = select(StrategyFreeze).where(
            StrategyFreeze.symbol == key.symbol,
            StrategyFreeze.strategy_name == key.strategy_name,
            StrategyFreeze.trade_mode == key.trade_mode,
        )
        try:
            with self._session() as session:
                return session.exec(stmt).first()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to load freeze record {key}: {e}") from e

    def get_by_id(self, record_id: int) -> StrategyFreeze | None:
        try:
            with self._session() as session:
                return session.get(StrategyFreeze, record_id)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to load freeze record id={record_id}: {e}") from e

    def get_or_create_default(self, key: FreezeKey) -> StrategyFreeze:
        """Return the row for ``key``, inserting one with default settings if absent.

        The insert relies on the unique key constraint: when another caller wins
        the race, its row is read back and returned instead.
        """
        record = self.get_by_key(key)
        if record is not None:
            return record

        now = self._clock()
        record = StrategyFreeze(
            symbol=key.symbol,
            strategy_name=key.strategy_name,
            trade_mode=key.trade_mode,
            loss_count=0,
            freeze_threshold=self.default_threshold,
            freeze_duration_hours=self.default_duration_hours,
            frozen_until=0,
            created_at=now,
            updated_at=now,
        )
        try:
            with self._session() as session:
                session.add(record)
                session.commit()
                session.refresh(record)
        except IntegrityError as e:
            existing = self.get_by_key(key)
            if existing is None:
                raise StoreError(f"Insert of {key} conflicted but no row was found") from e
            return existing
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to create freeze record {key}: {e}") from e

        logger.info(f"Created default freeze config for {key} (id={record.id})")
        return record

    # -- writes ------------------------------------------------------------

    def update_fields(self, record: StrategyFreeze, *fields: str):
        """Persist only the named columns of ``record``."""
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")
        if not fields:
            return

        values = {name: getattr(record, name) for name in fields}
        stmt = update(StrategyFreeze).where(StrategyFreeze.id == record.id).values(**values)
        try:
            with self._session() as session:
                result = session.execute(stmt)
                session.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to update freeze record id={record.id}: {e}") from e

        if result.rowcount == 0:
            raise RecordNotFoundError(f"Freeze record id={record.id} not found")

    def overwrite(self, record_id: int, values: dict[str, Any]) -> StrategyFreeze:
        """Replace the editable columns of one row and stamp ``updated_at``."""
        try:
            with self._session() as session:
                record = session.get(StrategyFreeze, record_id)
                if record is None:
                    raise RecordNotFoundError(f"Freeze record id={record_id} not found")
                for name in EDITABLE_FIELDS:
                    if name in values:
                        setattr(record, name, values[name])
                record.updated_at = self._clock()
                session.add(record)
                session.commit()
                session.refresh(record)
                return record
        except IntegrityError as e:
            raise DuplicateKeyError(
                f"Another freeze record already uses key {values.get('symbol')}-"
                f"{values.get('strategy_name')}-{values.get('trade_mode')}"
            ) from e
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to overwrite freeze record id={record_id}: {e}") from e

    def delete_by_id(self, record_id: int):
        try:
            with self._session() as session:
                record = session.get(StrategyFreeze, record_id)
                if record is None:
                    raise RecordNotFoundError(f"Freeze record id={record_id} not found")
                session.delete(record)
                session.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to delete freeze record id={record_id}: {e}") from e

    # -- listings ----------------------------------------------------------

    def list_page(self, page: int, page_size: int) -> tuple[list[StrategyFreeze], int]:
        """One page of records, most recently updated first, plus the total row count."""
        page, page_size = normalize_page(page, page_size)
        stmt = (
            select(StrategyFreeze)
            .order_by(StrategyFreeze.updated_at.desc(), StrategyFreeze.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        try:
            with self._session() as session:
                total = session.exec(select(func.count()).select_from(StrategyFreeze)).one()
                records = list(session.exec(stmt).all())
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to list freeze records: {e}") from e
        return records, total

    def distinct_values(self, field_name: str) -> list[str]:
        if field_name not in DISTINCT_FIELDS:
            raise ValueError(f"Distinct values not supported for {field_name!r}")
        column = getattr(StrategyFreeze, field_name)
        try:
            with self._session() as session:
                return list(session.exec(select(column).distinct().order_by(column)).all())
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read distinct {field_name}: {e}") from e
