"""Shared constants and defaults for strategy freeze records."""

from enum import Enum


class TradeMode(str, Enum):
    LIVE = "live"
    PAPER = "paper"


TRADE_MODE_LABELS: dict[str, str] = {
    TradeMode.LIVE.value: "实盘/live",
    TradeMode.PAPER.value: "测试/paper",
}

DEFAULT_FREEZE_THRESHOLD = 5
DEFAULT_FREEZE_HOURS = 24
SECONDS_PER_HOUR = 3600

# Shown in selection lists until real records exist
DEFAULT_SYMBOLS = ["BTCUSDT", "ETHUSDT", "BNBUSDT"]
DEFAULT_STRATEGY_NAMES = ["line3_coin6", "trend_follow"]

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
