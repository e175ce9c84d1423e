"""Logging setup and duration formatting for batch runs."""

import logging
import math


def setup_logging(level: str = "INFO") -> None:
    lvl = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=lvl, format="%(asctime)s | %(levelname)s | %(message)s")


def format_duration(seconds: float) -> str:
    """Render a wall-clock duration as a compact human-readable string."""
    if not math.isfinite(seconds):
        return "-"
    value = max(float(seconds), 0.0)
    if value < 1.0:
        return f"{value * 1e3:.0f}ms"
    minutes, seconds_rem = divmod(value, 60.0)
    if minutes >= 1.0:
        return f"{int(minutes)}m{seconds_rem:04.1f}s"
    return f"{seconds_rem:.1f}s"
