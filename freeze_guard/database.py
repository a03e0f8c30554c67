"""SQLModel database engine and schema bootstrap."""

import logging

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

from freeze_guard.config import settings
from freeze_guard.models.strategy_freeze import KEY_COLUMNS

logger = logging.getLogger(__name__)

# Column names used by the first schema of strategy_freeze
LEGACY_COLUMN_RENAMES = {
    "trade_type": "trade_mode",
    "freeze_until": "frozen_until",
    "freeze_on_loss_count": "freeze_threshold",
    "freeze_hours": "freeze_duration_hours",
}
LEGACY_TRADE_MODES = {"real": "live", "test": "paper"}


def build_engine(database_url: str) -> Engine:
    # SQLite needs check_same_thread=False; PostgreSQL does not
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(database_url, echo=False, connect_args=connect_args)


engine = build_engine(settings.database_url)


def _run_migrations(bind: Engine):
    """Upgrade a legacy strategy_freeze table in place."""
    inspector = inspect(bind)
    if "strategy_freeze" not in inspector.get_table_names():
        return

    columns = {col["name"] for col in inspector.get_columns("strategy_freeze")}
    renames = {
        old: new for old, new in LEGACY_COLUMN_RENAMES.items()
        if old in columns and new not in columns
    }
    if renames:
        with bind.connect() as conn:
            for old, new in renames.items():
                logger.info(f"Migrating: renaming strategy_freeze.{old} -> {new}")
                conn.execute(text(f"ALTER TABLE strategy_freeze RENAME COLUMN {old} TO {new}"))
            for old, new in LEGACY_TRADE_MODES.items():
                conn.execute(
                    text("UPDATE strategy_freeze SET trade_mode = :new WHERE trade_mode = :old"),
                    {"new": new, "old": old},
                )
            conn.commit()

    # Ensure one row per (symbol, strategy_name, trade_mode)
    inspector = inspect(bind)
    key_columns = list(KEY_COLUMNS)
    has_unique = any(
        uc["column_names"] == key_columns
        for uc in inspector.get_unique_constraints("strategy_freeze")
    ) or any(
        idx.get("unique") and idx["column_names"] == key_columns
        for idx in inspector.get_indexes("strategy_freeze")
    )
    if not has_unique:
        logger.info("Migrating: adding unique index on strategy_freeze key")
        with bind.connect() as conn:
            conn.execute(text(
                "CREATE UNIQUE INDEX ix_strategy_freeze_key_unique "
                "ON strategy_freeze (symbol, strategy_name, trade_mode)"
            ))
            conn.commit()


def create_db_and_tables(bind: Engine | None = None):
    """Create all tables. Called on startup."""
    bind = bind if bind is not None else engine
    SQLModel.metadata.create_all(bind)
    _run_migrations(bind)

