"""CLI tool for freeze admin operations.

Usage:
    python -m freeze_guard.cli list [page]
    python -m freeze_guard.cli status SYMBOL STRATEGY MODE
    python -m freeze_guard.cli unfreeze SYMBOL STRATEGY MODE
    python -m freeze_guard.cli reset SYMBOL STRATEGY MODE
    python -m freeze_guard.cli options
"""

import sys

from freeze_guard.config import settings
from freeze_guard.database import engine, create_db_and_tables
from freeze_guard.services.errors import FreezeError
from freeze_guard.services.freeze_service import FreezeService
from freeze_guard.services.freeze_store import FreezeStore
from freeze_guard.services.key_discovery import KeyDiscovery

COMMANDS = "list, status, unfreeze, reset, options"


def build_service() -> FreezeService:
    create_db_and_tables(engine)
    store = FreezeStore(
        engine,
        default_threshold=settings.default_freeze_threshold,
        default_duration_hours=settings.default_freeze_hours,
    )
    return FreezeService(store)


def _print_record(record, now: int):
    remaining = max(0, record.frozen_until - now)
    state = f"FROZEN ({remaining}s left)" if remaining else "active"
    print(
        f"#{record.id} {record.symbol} {record.strategy_name} {record.trade_mode}: "
        f"losses {record.loss_count}/{record.freeze_threshold}, "
        f"cooldown {record.freeze_duration_hours}h, {state}"
    )


def list_configs(service: FreezeService, args: list[str]):
    try:
        page = int(args[0]) if args else 1
    except ValueError:
        print("Expected: list [PAGE]")
        sys.exit(1)
    result = service.list_configs(page=page)
    now = service.now()
    for record in result.records:
        _print_record(record, now)
    print(f"Page {result.page}, {len(result.records)} of {result.total} records")


def show_status(service: FreezeService, args: list[str]):
    record = service.get_freeze_config(*_key_args(args))
    _print_record(record, service.now())


def unfreeze(service: FreezeService, args: list[str]):
    record = service.unfreeze_manually(*_key_args(args))
    print(f"Unfrozen {record.key}")


def reset(service: FreezeService, args: list[str]):
    record = service.reset_loss_count(*_key_args(args))
    print(f"Loss count reset for {record.key}")


def show_options(service: FreezeService, args: list[str]):
    discovery = KeyDiscovery(
        service.store,
        default_symbols=settings.default_symbols,
        default_strategy_names=settings.default_strategy_names,
    )
    options = discovery.options()
    print("Symbols:    " + ", ".join(options["symbols"]))
    print("Strategies: " + ", ".join(options["strategy_names"]))
    print("Modes:      " + ", ".join(f"{k} ({v})" for k, v in options["trade_modes"].items()))


def _key_args(args: list[str]) -> list[str]:
    if len(args) != 3:
        print("Expected: SYMBOL STRATEGY MODE")
        sys.exit(1)
    return args


HANDLERS = {
    "list": list_configs,
    "status": show_status,
    "unfreeze": unfreeze,
    "reset": reset,
    "options": show_options,
}


def main(argv: list[str] | None = None):
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        print("Usage: python -m freeze_guard.cli <command> [args]")
        print(f"Commands: {COMMANDS}")
        sys.exit(1)

    command, args = argv[0], argv[1:]
    handler = HANDLERS.get(command)
    if handler is None:
        print(f"Unknown command: {command}")
        sys.exit(1)

    try:
        handler(build_service(), args)
    except FreezeError as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
