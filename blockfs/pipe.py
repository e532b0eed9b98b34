"""An in-memory pipe with a fixed-size buffer between a reader and a writer."""

from __future__ import annotations

import threading

PIPESIZE = 512


class PipeClosed(BrokenPipeError):
    """The read end of the pipe was closed while data was still to be written."""


class Pipe:
    """A bounded byte channel; writers wait while it is full, readers while it is empty."""

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._data = bytearray()
        self.readopen = True
        self.writeopen = True
        self.nread = 0
        self.nwrite = 0

    def write(self, data: bytes) -> int:
        """Write all of data, waiting for room as needed; returns its length."""
        view = memoryview(bytes(data))
        total = len(view)
        done = 0
        with self._cond:
            while done < total:
                while len(self._data) == PIPESIZE:
                    if not self.readopen:
                        raise PipeClosed("read end of pipe is closed")
                    self._cond.notify_all()
                    self._cond.wait()
                m = min(PIPESIZE - len(self._data), total - done)
                self._data += view[done : done + m]
                self.nwrite += m
                done += m
            self._cond.notify_all()
        return total

    def read(self, n: int) -> bytes:
        """Read up to n bytes, waiting while the pipe is empty and still writable.

        Returns b"" once the write end is closed and everything has been read.
        """
        if n < 0:
            raise ValueError("cannot read a negative number of bytes")
        with self._cond:
            while not self._data and self.writeopen:
                self._cond.wait()
            chunk = bytes(self._data[:n])
            del self._data[:n]
            self.nread += len(chunk)
            self._cond.notify_all()
        return chunk

    def close(self, writable: bool) -> None:
        """Close the write end if writable is true, otherwise the read end."""
        with self._cond:
            if writable:
                self.writeopen = False
            else:
                self.readopen = False
            self._cond.notify_all()

    @property
    def closed(self) -> bool:
        """Whether both ends have been closed."""
        return not self.readopen and not self.writeopen