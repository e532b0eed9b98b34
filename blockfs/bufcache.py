"""A most-recently-used cache of disk blocks."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from blockfs.disk import B_DIRTY, B_VALID, Buf, MemDisk
from blockfs.layout import NBUF, KernelPanic


class BufferCache:
    """Holds a fixed number of buffers; each one is used by one holder at a time."""

    def __init__(self, disk: MemDisk, nbuf: int = NBUF) -> None:
        if nbuf < 1:
            raise ValueError("the cache needs at least one buffer")
        self.disk = disk
        self._lock = threading.Lock()
        # Index 0 is the most recently used buffer.
        self._mru: list[Buf] = [Buf() for _ in range(nbuf)]

    def _get(self, dev: int, blockno: int) -> Buf:
        with self._lock:
            buf = next(
                (b for b in self._mru if b.dev == dev and b.blockno == blockno), None
            )
            if buf is not None:
                buf.refcnt += 1
            else:
                # A dirty buffer is still in use by the log even with no references.
                buf = next(
                    (
                        b
                        for b in reversed(self._mru)
                        if b.refcnt == 0 and not b.flags & B_DIRTY
                    ),
                    None,
                )
                if buf is None:
                    raise KernelPanic("bget: no buffers")
                buf.dev = dev
                buf.blockno = blockno
                buf.flags = 0
                buf.refcnt = 1
        try:
            buf.lock.acquire()
        except KernelPanic:
            with self._lock:
                buf.refcnt -= 1
            raise
        return buf

    def bread(self, dev: int, blockno: int) -> Buf:
        """Return a locked buffer holding the contents of the block."""
        buf = self._get(dev, blockno)
        if not buf.flags & B_VALID:
            self.disk.rw(buf)
        return buf

    def bwrite(self, buf: Buf) -> None:
        """Write a locked buffer's contents to disk."""
        if not buf.lock.holding():
            raise KernelPanic("bwrite")
        buf.flags |= B_DIRTY
        self.disk.rw(buf)

    def brelse(self, buf: Buf) -> None:
        """Release a locked buffer; the last release makes it most recently used."""
        if not buf.lock.holding():
            raise KernelPanic("brelse")
        buf.lock.release()
        with self._lock:
            buf.refcnt -= 1
            if buf.refcnt == 0:
                self._mru.remove(buf)
                self._mru.insert(0, buf)

    @contextmanager
    def block(self, dev: int, blockno: int) -> Iterator[Buf]:
        """Read a block and release it when the block is left."""
        buf = self.bread(dev, blockno)
        try:
            yield buf
        finally:
            self.brelse(buf)