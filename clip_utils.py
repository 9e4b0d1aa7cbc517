# Clip Utilities - Time formatting and segment ID generation

import itertools
import math
import uuid
from typing import Callable

# Injected ID capability: any zero-arg callable returning a fresh string id
IdFactory = Callable[[], str]


def new_segment_id() -> str:
    """Generate a random segment id"""
    return str(uuid.uuid4())


class SequentialIdFactory:
    """
    Deterministic id factory

    Produces ids like ``seg-1``, ``seg-2``... Useful wherever a replayable
    sequence of edits must yield the same ids (tests, fixtures).
    """

    def __init__(self, prefix: str = "seg"):
        self.prefix = prefix
        self._counter = itertools.count(1)

    def __call__(self) -> str:
        return f"{self.prefix}-{next(self._counter)}"


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def round_seconds(value: float, places: int = 2) -> float:
    """Round a time value to a fixed number of decimals"""
    factor = 10 ** places
    # Half-up, not banker's rounding
    return math.floor(value * factor + 0.5) / factor


def format_time(seconds: float) -> str:
    """Format seconds as MM:SS for timeline labels"""
    mins = int(seconds // 60)
    secs = int(seconds % 60)
    return f"{mins:02d}:{secs:02d}"
