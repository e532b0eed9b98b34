"""Fixed-capacity circular buffer that overwrites its oldest element when full."""

from __future__ import annotations

from collections import deque
from typing import Any


class RingBuffer:
    """A circular buffer of fixed capacity."""

    def __init__(self, size: int) -> None:
        if size < 1:
            raise ValueError("ring buffer capacity must be positive")
        self._items: deque[Any] = deque(maxlen=size)

    @property
    def capacity(self) -> int:
        return self._items.maxlen  # type: ignore[return-value]

    def is_full(self) -> bool:
        return len(self._items) == self.capacity

    def is_empty(self) -> bool:
        return not self._items

    def __len__(self) -> int:
        return len(self._items)

    def write(self, elem: Any) -> None:
        """Append elem; when full, the oldest element is dropped."""
        self._items.append(elem)

    def read(self) -> Any:
        """Remove and return the oldest element."""
        if not self._items:
            raise IndexError("read from an empty ring buffer")
        return self._items.popleft()