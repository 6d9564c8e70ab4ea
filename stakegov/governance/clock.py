"""
Clock Sources

Governance reads two clocks: a monotonic block counter and a block-aligned
wall-clock timestamp. Every engine operation takes a single ``ClockSnapshot``
so it never observes two values of the same clock.
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Dict

from ..constants import BLOCK_TIME, GENESIS_TIME
from ..logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ClockSnapshot:
    """Both clocks read once."""
    block: int
    timestamp: int


class Clock:
    """Clock source interface."""

    def current_block(self) -> int:
        raise NotImplementedError

    def current_time(self) -> int:
        raise NotImplementedError

    def snapshot(self) -> ClockSnapshot:
        return ClockSnapshot(block=self.current_block(), timestamp=self.current_time())


class SystemClock(Clock):
    """
    Derives block height from the host clock.

    block = (now - genesis_time) // block_time, and the timestamp is the start
    of that block, so callers never see sub-block precision.
    """

    def __init__(self, block_time: int = BLOCK_TIME, genesis_time: int = GENESIS_TIME):
        if block_time < 1:
            raise ValueError("block_time must be >= 1")
        self.block_time = block_time
        self.genesis_time = genesis_time

    def current_block(self) -> int:
        return max(0, int(time.time()) - self.genesis_time) // self.block_time

    def current_time(self) -> int:
        return self.genesis_time + self.current_block() * self.block_time

    def snapshot(self) -> ClockSnapshot:
        block = self.current_block()
        return ClockSnapshot(
            block=block,
            timestamp=self.genesis_time + block * self.block_time,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": "system",
            "blockTime": self.block_time,
            "genesisTime": self.genesis_time,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SystemClock":
        return cls(
            block_time=data.get("blockTime", BLOCK_TIME),
            genesis_time=data.get("genesisTime", GENESIS_TIME),
        )

    def __repr__(self) -> str:
        return f"<SystemClock block_time={self.block_time} genesis={self.genesis_time}>"


class ManualClock(Clock):
    """Explicitly advanced clock for tests and the CLI simulator."""

    def __init__(self, block: int = 0, timestamp: int = 0):
        self._block = block
        self._timestamp = timestamp
        self._lock = threading.Lock()

    def current_block(self) -> int:
        return self._block

    def current_time(self) -> int:
        return self._timestamp

    def snapshot(self) -> ClockSnapshot:
        with self._lock:
            return ClockSnapshot(block=self._block, timestamp=self._timestamp)

    def advance(self, blocks: int = 0, seconds: int = 0) -> ClockSnapshot:
        """Move both clocks forward. Clocks never run backwards."""
        if blocks < 0 or seconds < 0:
            raise ValueError("Clocks are monotonic; cannot advance by a negative amount")
        with self._lock:
            self._block += blocks
            self._timestamp += seconds
            snap = ClockSnapshot(block=self._block, timestamp=self._timestamp)
        logger.debug(f"Clock advanced to block {snap.block}, time {snap.timestamp}")
        return snap

    def to_dict(self) -> Dict[str, Any]:
        return {"mode": "manual", "block": self._block, "timestamp": self._timestamp}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ManualClock":
        return cls(block=data.get("block", 0), timestamp=data.get("timestamp", 0))

    def __repr__(self) -> str:
        return f"<ManualClock block={self._block} time={self._timestamp}>"


def clock_from_dict(data: Dict[str, Any]) -> Clock:
    """Rebuild a clock saved with ``to_dict``; entries without a mode are manual."""
    if data.get("mode") == "system":
        return SystemClock.from_dict(data)
    return ManualClock.from_dict(data)
