"""Symbol and strategy option lists for selection UIs."""

from freeze_guard.services.freeze_store import FreezeStore
from freeze_guard.utils.constants import (
    DEFAULT_STRATEGY_NAMES,
    DEFAULT_SYMBOLS,
    TRADE_MODE_LABELS,
)


class KeyDiscovery:
    """Known keys come from existing records; the defaults only fill an empty table."""

    def __init__(
        self,
        store: FreezeStore,
        default_symbols: list[str] | None = None,
        default_strategy_names: list[str] | None = None,
    ):
        self.store = store
        self.default_symbols = list(default_symbols or DEFAULT_SYMBOLS)
        self.default_strategy_names = list(default_strategy_names or DEFAULT_STRATEGY_NAMES)

    def all_symbols(self) -> list[str]:
        return self.store.distinct_values("symbol") or list(self.default_symbols)

    def all_strategy_names(self) -> list[str]:
        return self.store.distinct_values("strategy_name") or list(self.default_strategy_names)

    def options(self) -> dict:
        return {
            "symbols": self.all_symbols(),
            "strategy_names": self.all_strategy_names(),
            "trade_modes": dict(TRADE_MODE_LABELS),
        }
