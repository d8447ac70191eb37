"""Wall-clock helpers shared by the estimator, selector and monitor."""

import time


def now_ms() -> int:
    """Current wall-clock time in integer milliseconds."""
    return int(time.time() * 1000)
