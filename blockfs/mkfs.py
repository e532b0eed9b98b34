"""Build a file system image holding a flat root directory of files."""

from __future__ import annotations

import struct
import sys
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path

from blockfs.layout import (
    BPB,
    BSIZE,
    FSSIZE,
    IPB,
    LOGSIZE,
    MAXFILE,
    NDIRECT,
    ROOTINO,
    Dirent,
    DiskInode,
    FileType,
    Superblock,
    inode_block,
)

NINODES = 200
NBITMAP = FSSIZE // (BSIZE * 8) + 1
NINODEBLOCKS = NINODES // IPB + 1
NLOG = LOGSIZE
NMETA = 2 + NLOG + NINODEBLOCKS + NBITMAP  # boot, super, log, inodes, bitmap
NBLOCKS = FSSIZE - NMETA

_ADDR = struct.Struct("<I")


class _ImageBuilder:
    """Lays out an image: boot block, superblock, log, inodes, bitmap, data."""

    def __init__(self) -> None:
        self.image = bytearray(FSSIZE * BSIZE)
        self.sb = Superblock(
            size=FSSIZE,
            nblocks=NBLOCKS,
            ninodes=NINODES,
            nlog=NLOG,
            logstart=2,
            inodestart=2 + NLOG,
            bmapstart=2 + NLOG + NINODEBLOCKS,
        )
        self.freeinode = 1
        self.freeblock = NMETA
        self.image[BSIZE : BSIZE + Superblock.SIZE] = self.sb.pack()

        self.root = self._ialloc(FileType.DIR)
        if self.root != ROOTINO:
            raise RuntimeError("root directory did not get the root inode number")
        self._iappend(self.root, Dirent(self.root, ".").pack())
        self._iappend(self.root, Dirent(self.root, "..").pack())

    def _inode_offset(self, inum: int) -> int:
        return inode_block(inum, self.sb) * BSIZE + (inum % IPB) * DiskInode.SIZE

    def _read_inode(self, inum: int) -> DiskInode:
        off = self._inode_offset(inum)
        return DiskInode.unpack(self.image[off : off + DiskInode.SIZE])

    def _write_inode(self, inum: int, din: DiskInode) -> None:
        off = self._inode_offset(inum)
        self.image[off : off + DiskInode.SIZE] = din.pack()

    def _ialloc(self, type: int) -> int:
        inum = self.freeinode
        if inum >= NINODES:
            raise ValueError("out of inodes")
        self.freeinode += 1
        self._write_inode(inum, DiskInode(type=type, nlink=1))
        return inum

    def _new_block(self) -> int:
        if self.freeblock >= FSSIZE:
            raise ValueError("image is full")
        b = self.freeblock
        self.freeblock += 1
        return b

    def _iappend(self, inum: int, data: bytes) -> None:
        din = self._read_inode(inum)
        off = din.size
        pos = 0
        while pos < len(data):
            fbn = off // BSIZE
            if fbn >= MAXFILE:
                raise ValueError("file too large")
            if fbn < NDIRECT:
                if din.addrs[fbn] == 0:
                    din.addrs[fbn] = self._new_block()
                x = din.addrs[fbn]
            else:
                if din.addrs[NDIRECT] == 0:
                    din.addrs[NDIRECT] = self._new_block()
                slot = din.addrs[NDIRECT] * BSIZE + (fbn - NDIRECT) * _ADDR.size
                (x,) = _ADDR.unpack_from(self.image, slot)
                if x == 0:
                    x = self._new_block()
                    _ADDR.pack_into(self.image, slot, x)
            n1 = min(len(data) - pos, (fbn + 1) * BSIZE - off)
            start = x * BSIZE + off - fbn * BSIZE
            self.image[start : start + n1] = data[pos : pos + n1]
            pos += n1
            off += n1
        din.size = off
        self._write_inode(inum, din)

    def add_file(self, name: str, data: bytes) -> int:
        """Store a file in the root directory; a leading '_' is dropped from name."""
        if "/" in name:
            raise ValueError(f"file name may not contain '/': {name!r}")
        if name.startswith("_"):
            name = name[1:]
        inum = self._ialloc(FileType.FILE)
        self._iappend(self.root, Dirent(inum, name).pack())
        self._iappend(inum, bytes(data))
        return inum

    def finish(self) -> int:
        """Round the root directory up to whole blocks and write the bitmap.

        Returns the number of blocks marked in use.
        """
        din = self._read_inode(self.root)
        din.size = (din.size // BSIZE + 1) * BSIZE
        self._write_inode(self.root, din)

        used = self.freeblock
        if used >= BPB:
            raise ValueError("too many blocks for one bitmap block")
        bitmap = bytearray(BSIZE)
        for i in range(used):
            bitmap[i // 8] |= 1 << (i % 8)
        start = self.sb.bmapstart * BSIZE
        self.image[start : start + BSIZE] = bitmap
        return used


def build_image(
    files: Mapping[str, bytes] | Iterable[tuple[str, bytes]] = (),
) -> bytes:
    """Build an image whose root directory holds the given (name, contents) files."""
    builder = _ImageBuilder()
    items = files.items() if isinstance(files, Mapping) else files
    for name, data in items:
        builder.add_file(name, data)
    builder.finish()
    return bytes(builder.image)


def main(argv: Sequence[str] | None = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print("Usage: mkfs fs.img files...", file=sys.stderr)
        return 1
    image_path, *paths = args

    print(
        f"nmeta {NMETA} (boot, super, log blocks {NLOG} inode blocks {NINODEBLOCKS}, "
        f"bitmap blocks {NBITMAP}) blocks {NBLOCKS} total {FSSIZE}"
    )
    builder = _ImageBuilder()
    for path in paths:
        if "/" in path:
            print(f"mkfs: {path}: file names may not contain '/'", file=sys.stderr)
            return 1
        try:
            data = Path(path).read_bytes()
        except OSError as exc:
            print(f"{path}: {exc.strerror}", file=sys.stderr)
            return 1
        try:
            builder.add_file(path, data)
        except ValueError as exc:
            print(f"mkfs: {path}: {exc}", file=sys.stderr)
            return 1

    try:
        used = builder.finish()
    except ValueError as exc:
        print(f"mkfs: {exc}", file=sys.stderr)
        return 1
    print(f"balloc: first {used} blocks have been allocated")
    print(f"balloc: write bitmap block at sector {builder.sb.bmapstart}")

    try:
        Path(image_path).write_bytes(builder.image)
    except OSError as exc:
        print(f"{image_path}: {exc.strerror}", file=sys.stderr)
        return 1
    return 0