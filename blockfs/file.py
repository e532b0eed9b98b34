"""The system-wide table of open files over inodes and pipes."""

from __future__ import annotations

import enum
import errno
import threading
from dataclasses import dataclass

from blockfs.fs import FileSystem, Inode, Stat
from blockfs.layout import BSIZE, MAXOPBLOCKS, NFILE, KernelPanic
from blockfs.pipe import Pipe

# Write a few blocks at a time to stay within one log transaction:
# inode, indirect block, allocation blocks and two blocks of slop.
_MAX_WRITE = ((MAXOPBLOCKS - 1 - 1 - 2) // 2) * BSIZE


class FdType(enum.Enum):
    """What an open file refers to."""

    NONE = 0
    PIPE = 1
    INODE = 2


@dataclass(eq=False)
class OpenFile:
    """An entry of the open-file table."""

    type: FdType = FdType.NONE
    ref: int = 0
    readable: bool = False
    writable: bool = False
    pipe: Pipe | None = None
    ip: Inode | None = None
    off: int = 0


class FileTable:
    """A fixed number of open-file entries shared by the whole system."""

    def __init__(self, fs: FileSystem) -> None:
        self.fs = fs
        self._lock = threading.Lock()
        self._files = [OpenFile() for _ in range(NFILE)]

    def alloc(self) -> OpenFile:
        """Take a free entry with one reference."""
        with self._lock:
            for f in self._files:
                if f.ref == 0:
                    f.ref = 1
                    return f
        raise OSError(errno.ENFILE, "file table full")

    def dup(self, f: OpenFile) -> OpenFile:
        """Take another reference to f."""
        with self._lock:
            if f.ref < 1:
                raise KernelPanic("filedup")
            f.ref += 1
        return f

    def close(self, f: OpenFile) -> None:
        """Drop a reference; the last one closes the underlying pipe or inode."""
        with self._lock:
            if f.ref < 1:
                raise KernelPanic("fileclose")
            f.ref -= 1
            if f.ref > 0:
                return
            kind, pipe, ip, writable = f.type, f.pipe, f.ip, f.writable
            f.type = FdType.NONE
        if kind is FdType.PIPE:
            pipe.close(writable)
        elif kind is FdType.INODE:
            with self.fs.log.transaction():
                self.fs.iput(ip)

    def stat(self, f: OpenFile) -> Stat:
        """Metadata of the inode behind f."""
        if f.type is not FdType.INODE:
            raise OSError(errno.EBADF, "not an inode file")
        self.fs.ilock(f.ip)
        try:
            return self.fs.stati(f.ip)
        finally:
            self.fs.iunlock(f.ip)

    def read(self, f: OpenFile, n: int) -> bytes:
        """Read up to n bytes from f, advancing its offset."""
        if not f.readable:
            raise OSError(errno.EBADF, "file not open for reading")
        if f.type is FdType.PIPE:
            return f.pipe.read(n)
        if f.type is FdType.INODE:
            self.fs.ilock(f.ip)
            try:
                data = self.fs.readi(f.ip, f.off, n)
                f.off += len(data)
            finally:
                self.fs.iunlock(f.ip)
            return data
        raise KernelPanic("fileread")

    def write(self, f: OpenFile, data: bytes) -> int:
        """Write all of data to f, advancing its offset; returns its length."""
        if not f.writable:
            raise OSError(errno.EBADF, "file not open for writing")
        if f.type is FdType.PIPE:
            return f.pipe.write(data)
        if f.type is FdType.INODE:
            data = bytes(data)
            done = 0
            while done < len(data):
                chunk = data[done : done + _MAX_WRITE]
                with self.fs.log.transaction():
                    self.fs.ilock(f.ip)
                    try:
                        written = self.fs.writei(f.ip, chunk, f.off)
                        if written > 0:
                            f.off += written
                    finally:
                        self.fs.iunlock(f.ip)
                if written != len(chunk):
                    raise KernelPanic("short filewrite")
                done += written
            return len(data)
        raise KernelPanic("filewrite")

    def pipe_alloc(self) -> tuple[OpenFile, OpenFile]:
        """Create a pipe; returns its read end and its write end."""
        rf = self.alloc()
        try:
            wf = self.alloc()
        except OSError:
            self.close(rf)
            raise
        p = Pipe()
        rf.type, rf.readable, rf.writable, rf.pipe = FdType.PIPE, True, False, p
        wf.type, wf.readable, wf.writable, wf.pipe = FdType.PIPE, False, True, p
        return rf, wf