"""Inodes, directories and path names on top of the block cache and the log.

An inode moves through these states:

* allocated on disk when its type is non-zero (``ialloc``; ``iput`` frees it
  once it has no links and no references);
* referenced in the inode cache while ``ref`` is positive (``_iget``/``idup``
  take a reference, ``iput`` drops one);
* valid once ``ilock`` has read it from disk;
* locked while a caller examines or changes it.
"""

from __future__ import annotations

import errno
import struct
import threading
from collections.abc import Callable
from dataclasses import dataclass, field

from blockfs.bufcache import BufferCache
from blockfs.disk import MemDisk, _SleepLock
from blockfs.layout import (
    BPB,
    BSIZE,
    DIRSIZ,
    IPB,
    MAXFILE,
    NDEV,
    NDIRECT,
    NINDIRECT,
    NINODE,
    ROOTDEV,
    ROOTINO,
    Dirent,
    DiskInode,
    FileType,
    KernelPanic,
    Superblock,
    bitmap_block,
    inode_block,
)
from blockfs.log import Log

_ADDR = struct.Struct("<I")

DeviceRead = Callable[["Inode", int], bytes]
DeviceWrite = Callable[["Inode", bytes], int]


@dataclass(frozen=True)
class Stat:
    """Metadata about a file."""

    dev: int
    ino: int
    type: int
    nlink: int
    size: int


@dataclass(eq=False)
class Inode:
    """An in-memory copy of an inode, with cache bookkeeping."""

    dev: int = 0
    inum: int = 0
    ref: int = 0
    valid: bool = False
    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: list[int] = field(default_factory=lambda: [0] * (NDIRECT + 1))
    lock: _SleepLock = field(default_factory=_SleepLock, repr=False)


@dataclass(frozen=True)
class _Device:
    read: DeviceRead | None
    write: DeviceWrite | None


def _truncate_name(name: str) -> str:
    raw = name.encode("utf-8", "surrogateescape")[:DIRSIZ]
    return raw.decode("utf-8", "surrogateescape")


def _same_name(a: str, b: str) -> bool:
    enc = lambda s: s.encode("utf-8", "surrogateescape")[:DIRSIZ]  # noqa: E731
    return enc(a) == enc(b)


def skip_elem(path: str) -> tuple[str, str] | None:
    """Split the first element off path.

    Returns the element (cut to DIRSIZ bytes) and the rest of the path with
    leading slashes removed, or None when there is no element left.
    """
    stripped = path.lstrip("/")
    if not stripped:
        return None
    name, _, rest = stripped.partition("/")
    return _truncate_name(name), rest.lstrip("/")


class FileSystem:
    """A file system on one disk: blocks, inodes, directories and paths."""

    def __init__(self, disk: MemDisk, dev: int = ROOTDEV) -> None:
        self.disk = disk
        self.dev = dev
        self.cache = BufferCache(disk)
        with self.cache.block(dev, 1) as bp:
            self.sb = Superblock.unpack(bp.data)
        self.log = Log(self.cache, dev, self.sb)
        self._icache_lock = threading.Lock()
        self._inodes = [Inode() for _ in range(NINODE)]
        self._devices: dict[int, _Device] = {}

    def register_device(
        self,
        major: int,
        read: DeviceRead | None = None,
        write: DeviceWrite | None = None,
    ) -> None:
        """Install the read and write handlers for a major device number."""
        if not 0 <= major < NDEV:
            raise ValueError(f"major device number must be below {NDEV}")
        self._devices[major] = _Device(read, write)

    def _device_handler(self, major: int, op: str) -> Callable:
        device = self._devices.get(major) if 0 <= major < NDEV else None
        handler = getattr(device, op, None) if device else None
        if handler is None:
            raise OSError(errno.ENODEV, f"no {op} handler for device {major}")
        return handler

    # Blocks.

    def _bzero(self, blockno: int) -> None:
        with self.cache.block(self.dev, blockno) as bp:
            bp.data[:] = bytes(BSIZE)
            self.log.log_write(bp)

    def _balloc(self) -> int:
        for base in range(0, self.sb.size, BPB):
            found = None
            with self.cache.block(self.dev, bitmap_block(base, self.sb)) as bp:
                for bi in range(min(BPB, self.sb.size - base)):
                    mask = 1 << (bi % 8)
                    if not bp.data[bi // 8] & mask:
                        bp.data[bi // 8] |= mask
                        self.log.log_write(bp)
                        found = base + bi
                        break
            if found is not None:
                self._bzero(found)
                return found
        raise KernelPanic("balloc: out of blocks")

    def _bfree(self, b: int) -> None:
        with self.cache.block(self.dev, bitmap_block(b, self.sb)) as bp:
            bi = b % BPB
            mask = 1 << (bi % 8)
            if not bp.data[bi // 8] & mask:
                raise KernelPanic("freeing free block")
            bp.data[bi // 8] &= ~mask & 0xFF
            self.log.log_write(bp)

    # Inodes.

    def _dinode_location(self, inum: int) -> tuple[int, int]:
        return inode_block(inum, self.sb), (inum % IPB) * DiskInode.SIZE

    def ialloc(self, type: int) -> Inode:
        """Allocate an inode of the given type; returned referenced, unlocked."""
        for inum in range(1, self.sb.ninodes):
            blockno, offset = self._dinode_location(inum)
            with self.cache.block(self.dev, blockno) as bp:
                if DiskInode.unpack(bp.data[offset:]).type != 0:
                    continue
                bp.data[offset : offset + DiskInode.SIZE] = DiskInode(type=type).pack()
                self.log.log_write(bp)
            return self._iget(self.dev, inum)
        raise KernelPanic("ialloc: no inodes")

    def iupdate(self, ip: Inode) -> None:
        """Copy a locked in-memory inode to disk."""
        blockno, offset = self._dinode_location(ip.inum)
        dinode = DiskInode(ip.type, ip.major, ip.minor, ip.nlink, ip.size, ip.addrs)
        with self.cache.block(ip.dev, blockno) as bp:
            bp.data[offset : offset + DiskInode.SIZE] = dinode.pack()
            self.log.log_write(bp)

    def _iget(self, dev: int, inum: int) -> Inode:
        with self._icache_lock:
            empty = None
            for ip in self._inodes:
                if ip.ref > 0 and ip.dev == dev and ip.inum == inum:
                    ip.ref += 1
                    return ip
                if empty is None and ip.ref == 0:
                    empty = ip
            if empty is None:
                raise KernelPanic("iget: no inodes")
            empty.dev = dev
            empty.inum = inum
            empty.ref = 1
            empty.valid = False
            return empty

    def idup(self, ip: Inode) -> Inode:
        """Take another reference to ip."""
        with self._icache_lock:
            ip.ref += 1
        return ip

    def ilock(self, ip: Inode) -> None:
        """Lock ip, reading it from disk if needed."""
        if ip is None or ip.ref < 1:
            raise KernelPanic("ilock")
        ip.lock.acquire()
        if not ip.valid:
            blockno, offset = self._dinode_location(ip.inum)
            with self.cache.block(ip.dev, blockno) as bp:
                dinode = DiskInode.unpack(bp.data[offset:])
            ip.type = dinode.type
            ip.major = dinode.major
            ip.minor = dinode.minor
            ip.nlink = dinode.nlink
            ip.size = dinode.size
            ip.addrs = list(dinode.addrs)
            ip.valid = True
            if ip.type == 0:
                raise KernelPanic("ilock: no type")

    def iunlock(self, ip: Inode) -> None:
        """Unlock ip."""
        if ip is None or not ip.lock.holding() or ip.ref < 1:
            raise KernelPanic("iunlock")
        ip.lock.release()

    def iput(self, ip: Inode) -> None:
        """Drop a reference; free the inode on disk if it was the last and unlinked.

        Must run inside a transaction in case the inode is freed.
        """
        ip.lock.acquire()
        try:
            if ip.valid and ip.nlink == 0:
                with self._icache_lock:
                    refs = ip.ref
                if refs == 1:
                    self._itrunc(ip)
                    ip.type = 0
                    self.iupdate(ip)
                    ip.valid = False
        finally:
            ip.lock.release()
        with self._icache_lock:
            ip.ref -= 1

    def iunlockput(self, ip: Inode) -> None:
        """Unlock ip, then drop a reference."""
        self.iunlock(ip)
        self.iput(ip)

    def _bmap(self, ip: Inode, bn: int) -> int:
        if bn < NDIRECT:
            if ip.addrs[bn] == 0:
                ip.addrs[bn] = self._balloc()
            return ip.addrs[bn]
        bn -= NDIRECT
        if bn < NINDIRECT:
            if ip.addrs[NDIRECT] == 0:
                ip.addrs[NDIRECT] = self._balloc()
            with self.cache.block(ip.dev, ip.addrs[NDIRECT]) as bp:
                (addr,) = _ADDR.unpack_from(bp.data, bn * _ADDR.size)
                if addr == 0:
                    addr = self._balloc()
                    _ADDR.pack_into(bp.data, bn * _ADDR.size, addr)
                    self.log.log_write(bp)
            return addr
        raise KernelPanic("bmap: out of range")

    def _itrunc(self, ip: Inode) -> None:
        for i, addr in enumerate(ip.addrs[:NDIRECT]):
            if addr:
                self._bfree(addr)
                ip.addrs[i] = 0
        if ip.addrs[NDIRECT]:
            with self.cache.block(ip.dev, ip.addrs[NDIRECT]) as bp:
                indirect = [a for (a,) in _ADDR.iter_unpack(bytes(bp.data))]
            for addr in indirect:
                if addr:
                    self._bfree(addr)
            self._bfree(ip.addrs[NDIRECT])
            ip.addrs[NDIRECT] = 0
        ip.size = 0
        self.iupdate(ip)

    def stati(self, ip: Inode) -> Stat:
        """Metadata of a locked inode."""
        return Stat(ip.dev, ip.inum, ip.type, ip.nlink, ip.size)

    def readi(self, ip: Inode, off: int, n: int) -> bytes:
        """Read up to n bytes at off from a locked inode."""
        if ip.type == FileType.DEV:
            return bytes(self._device_handler(ip.major, "read")(ip, n))
        if off < 0 or n < 0 or off > ip.size:
            raise ValueError(f"read of {n} bytes at {off} outside file of {ip.size}")
        n = min(n, ip.size - off)
        out = bytearray()
        while len(out) < n:
            pos = off + len(out)
            start = pos % BSIZE
            m = min(n - len(out), BSIZE - start)
            with self.cache.block(ip.dev, self._bmap(ip, pos // BSIZE)) as bp:
                out += bp.data[start : start + m]
        return bytes(out)

    def writei(self, ip: Inode, data: bytes, off: int) -> int:
        """Write data at off into a locked inode; returns the bytes written."""
        if ip.type == FileType.DEV:
            return self._device_handler(ip.major, "write")(ip, bytes(data))
        n = len(data)
        if off < 0 or off > ip.size:
            raise ValueError(f"write at {off} outside file of {ip.size}")
        end = off + n
        if end > MAXFILE * BSIZE:
            raise ValueError("write past the largest file size")
        view = memoryview(bytes(data))
        done = 0
        while done < n:
            pos = off + done
            start = pos % BSIZE
            m = min(n - done, BSIZE - start)
            with self.cache.block(ip.dev, self._bmap(ip, pos // BSIZE)) as bp:
                bp.data[start : start + m] = view[done : done + m]
                self.log.log_write(bp)
            done += m
        if n > 0 and end > ip.size:
            ip.size = end
            self.iupdate(ip)
        return n

    # Directories.

    def dirlookup(self, dp: Inode, name: str) -> tuple[Inode, int] | None:
        """Find name in a locked directory: its inode and the entry's offset."""
        if dp.type != FileType.DIR:
            raise KernelPanic("dirlookup not DIR")
        for off in range(0, dp.size, Dirent.SIZE):
            raw = self.readi(dp, off, Dirent.SIZE)
            if len(raw) != Dirent.SIZE:
                raise KernelPanic("dirlookup read")
            de = Dirent.unpack(raw)
            if de.inum and _same_name(name, de.name):
                return self._iget(dp.dev, de.inum), off
        return None

    def dirlink(self, dp: Inode, name: str, inum: int) -> None:
        """Add the entry (name, inum) to a locked directory."""
        found = self.dirlookup(dp, name)
        if found is not None:
            self.iput(found[0])
            raise FileExistsError(name)
        slot = dp.size
        for off in range(0, dp.size, Dirent.SIZE):
            raw = self.readi(dp, off, Dirent.SIZE)
            if len(raw) != Dirent.SIZE:
                raise KernelPanic("dirlink read")
            if Dirent.unpack(raw).inum == 0:
                slot = off
                break
        entry = Dirent(inum, _truncate_name(name)).pack()
        if self.writei(dp, entry, slot) != Dirent.SIZE:
            raise KernelPanic("dirlink")

    # Paths.

    def _namex(self, path: str, parent: bool, cwd: Inode | None):
        if path.startswith("/"):
            ip = self._iget(self.dev, ROOTINO)
        else:
            if cwd is None:
                raise ValueError("a relative path needs a working directory")
            ip = self.idup(cwd)
        while (step := skip_elem(path)) is not None:
            name, path = step
            self.ilock(ip)
            if ip.type != FileType.DIR:
                self.iunlockput(ip)
                return None
            if parent and not path:
                self.iunlock(ip)
                return ip, name
            found = self.dirlookup(ip, name)
            self.iunlockput(ip)
            if found is None:
                return None
            ip = found[0]
        if parent:
            self.iput(ip)
            return None
        return ip

    def namei(self, path: str, cwd: Inode | None = None) -> Inode | None:
        """The referenced, unlocked inode that path names, or None."""
        return self._namex(path, False, cwd)

    def nameiparent(
        self, path: str, cwd: Inode | None = None
    ) -> tuple[Inode, str] | None:
        """The parent directory of path and its final element, or None."""
        return self._namex(path, True, cwd)