"""A redo log that makes groups of block writes atomic."""

from __future__ import annotations

import struct
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from blockfs.bufcache import BufferCache
from blockfs.disk import B_DIRTY, Buf
from blockfs.layout import BSIZE, LOGSIZE, MAXOPBLOCKS, KernelPanic, Superblock

_HEADER = struct.Struct(f"<i{LOGSIZE}i")


class Log:
    """Groups the writes of concurrent operations into one committed transaction.

    On disk the log is a header block listing block numbers, followed by the
    logged copies of those blocks.
    """

    def __init__(self, cache: BufferCache, dev: int, sb: Superblock) -> None:
        if _HEADER.size >= BSIZE:
            raise KernelPanic("initlog: too big logheader")
        self.cache = cache
        self.dev = dev
        self.start = sb.logstart
        self.size = sb.nlog
        self.outstanding = 0
        self.committing = False
        self._blocks: list[int] = []
        self._cond = threading.Condition()
        self._recover()

    @property
    def blocks(self) -> tuple[int, ...]:
        """Block numbers logged in the current transaction."""
        return tuple(self._blocks)

    def _recover(self) -> None:
        self._read_head()
        self._install_trans()
        self._blocks.clear()
        self._write_head()

    def _read_head(self) -> None:
        with self.cache.block(self.dev, self.start) as buf:
            n, *blocks = _HEADER.unpack_from(buf.data)
        self._blocks = blocks[: max(n, 0)]

    def _write_head(self) -> None:
        with self.cache.block(self.dev, self.start) as buf:
            n = len(self._blocks)
            struct.pack_into(f"<i{n}i", buf.data, 0, n, *self._blocks)
            self.cache.bwrite(buf)

    def _install_trans(self) -> None:
        for tail, blockno in enumerate(self._blocks):
            with self.cache.block(self.dev, self.start + tail + 1) as lbuf, \
                    self.cache.block(self.dev, blockno) as dbuf:
                dbuf.data[:] = lbuf.data
                self.cache.bwrite(dbuf)

    def _write_log(self) -> None:
        for tail, blockno in enumerate(self._blocks):
            with self.cache.block(self.dev, self.start + tail + 1) as to, \
                    self.cache.block(self.dev, blockno) as src:
                to.data[:] = src.data
                self.cache.bwrite(to)

    def _commit(self) -> None:
        if self._blocks:
            self._write_log()
            self._write_head()  # the real commit
            self._install_trans()
            self._blocks.clear()
            self._write_head()

    def begin_op(self) -> None:
        """Start an operation, waiting while a commit runs or log space is short."""
        with self._cond:
            while self.committing or (
                len(self._blocks) + (self.outstanding + 1) * MAXOPBLOCKS > LOGSIZE
            ):
                self._cond.wait()
            self.outstanding += 1

    def end_op(self) -> None:
        """Finish an operation; the last outstanding one commits."""
        with self._cond:
            self.outstanding -= 1
            if self.committing:
                raise KernelPanic("log.committing")
            do_commit = self.outstanding == 0
            if do_commit:
                self.committing = True
            else:
                self._cond.notify_all()
        if do_commit:
            try:
                self._commit()
            finally:
                with self._cond:
                    self.committing = False
                    self._cond.notify_all()

    def log_write(self, buf: Buf) -> None:
        """Record a modified buffer in the transaction and pin it in the cache."""
        if len(self._blocks) >= LOGSIZE or len(self._blocks) >= self.size - 1:
            raise KernelPanic("too big a transaction")
        if self.outstanding < 1:
            raise KernelPanic("log_write outside of trans")
        with self._cond:
            if buf.blockno not in self._blocks:
                self._blocks.append(buf.blockno)
            buf.flags |= B_DIRTY

    @contextmanager
    def transaction(self) -> Iterator[Log]:
        """Run the enclosed block as one operation."""
        self.begin_op()
        try:
            yield self
        finally:
            self.end_op()