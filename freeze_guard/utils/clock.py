"""Wall-clock helpers. All freeze timestamps are unix seconds."""

import time


def unix_now() -> int:
    return int(time.time())
