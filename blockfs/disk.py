"""Disk buffers and an in-memory disk that serves them."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

from blockfs.layout import BSIZE, ROOTDEV, KernelPanic

B_VALID = 0x2  # buffer has been read from disk
B_DIRTY = 0x4  # buffer needs to be written to disk


class _SleepLock:
    """A lock held by one thread at a time; others wait until it is free."""

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._holder: int | None = None

    def acquire(self) -> None:
        me = threading.get_ident()
        with self._cond:
            if self._holder == me:
                raise KernelPanic("acquiresleep: lock already held")
            while self._holder is not None:
                self._cond.wait()
            self._holder = me

    def release(self) -> None:
        with self._cond:
            if self._holder != threading.get_ident():
                raise KernelPanic("releasesleep: lock not held")
            self._holder = None
            self._cond.notify_all()

    def holding(self) -> bool:
        return self._holder == threading.get_ident()


@dataclass(eq=False)
class Buf:
    """An in-memory copy of one disk block."""

    dev: int = 0
    blockno: int = 0
    flags: int = 0
    refcnt: int = 0
    data: bytearray = field(default_factory=lambda: bytearray(BSIZE))
    lock: _SleepLock = field(default_factory=_SleepLock, repr=False)


class MemDisk:
    """A disk whose blocks live in a byte array."""

    def __init__(self, image: bytes | bytearray, dev: int = ROOTDEV) -> None:
        self.image = bytearray(image)
        self.dev = dev

    @property
    def nblocks(self) -> int:
        return len(self.image) // BSIZE

    def rw(self, buf: Buf) -> None:
        """Sync buf with the disk.

        A dirty buffer is written and marked clean; otherwise the block is
        read into it. Either way the buffer ends up valid.
        """
        if not buf.lock.holding():
            raise KernelPanic("iderw: buf not locked")
        if buf.flags & (B_VALID | B_DIRTY) == B_VALID:
            raise KernelPanic("iderw: nothing to do")
        if buf.dev != self.dev:
            raise KernelPanic(f"iderw: request not for disk {self.dev}")
        if not 0 <= buf.blockno < self.nblocks:
            raise KernelPanic("iderw: block out of range")

        start = buf.blockno * BSIZE
        if buf.flags & B_DIRTY:
            buf.flags &= ~B_DIRTY
            self.image[start : start + BSIZE] = buf.data
        else:
            buf.data[:] = self.image[start : start + BSIZE]
        buf.flags |= B_VALID