"""A 64-bit cycle counter split into two 32-bit halves."""

from __future__ import annotations

import time
from dataclasses import dataclass

_MASK = 0xFFFFFFFF
UINT32_MAX = 0xFFFFFFFF


@dataclass(frozen=True)
class Cycles:
    """A counter reading as low and high 32-bit words."""

    low: int
    high: int

    def __post_init__(self) -> None:
        for word in (self.low, self.high):
            if not 0 <= word <= _MASK:
                raise ValueError("counter words must fit in 32 bits")

    @classmethod
    def now(cls) -> Cycles:
        """Read a monotonic counter."""
        ticks = time.perf_counter_ns() & 0xFFFFFFFFFFFFFFFF
        return cls(ticks & _MASK, ticks >> 32)

    def __sub__(self, other: Cycles) -> Cycles:
        if not isinstance(other, Cycles):
            return NotImplemented
        low = (self.low - other.low) & _MASK
        high = (self.high - other.high) & _MASK
        if self.low < other.low:
            high = (high - 1) & _MASK
        return Cycles(low, high)

    def __float__(self) -> float:
        return float(self.low) + float(self.high) * float(UINT32_MAX)