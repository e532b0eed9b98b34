import pytest

from blockfs.layout import (
    BPB,
    BSIZE,
    DIRSIZ,
    IPB,
    NDIRECT,
    Dirent,
    DiskInode,
    KernelPanic,
    Superblock,
    bitmap_block,
    inode_block,
)


def _sb():
    return Superblock(
        size=1000, nblocks=941, ninodes=200, nlog=30, logstart=2, inodestart=32, bmapstart=58
    )


def test_superblock_round_trip():
    sb = _sb()
    data = sb.pack()
    assert len(data) == Superblock.SIZE
    assert Superblock.unpack(data) == sb


def test_superblock_is_little_endian():
    data = _sb().pack()
    assert data[:4] == (1000).to_bytes(4, "little")


def test_superblock_unpack_from_larger_block():
    sb = _sb()
    block = sb.pack() + bytes(BSIZE - Superblock.SIZE)
    assert Superblock.unpack(block) == sb


def test_structures_tile_a_block():
    inodes = [DiskInode(type=2, nlink=1, size=i) for i in range(IPB)]
    inode_block_bytes = b"".join(ip.pack() for ip in inodes)
    assert len(inode_block_bytes) == BSIZE
    size = DiskInode.SIZE
    back = [
        DiskInode.unpack(inode_block_bytes[k : k + size])
        for k in range(0, BSIZE, size)
    ]
    assert back == inodes

    count = BSIZE // Dirent.SIZE
    entries = [Dirent(i + 1, f"f{i}") for i in range(count)]
    dir_block = b"".join(de.pack() for de in entries)
    assert len(dir_block) == BSIZE


def test_disk_inode_round_trip():
    addrs = list(range(100, 100 + NDIRECT + 1))
    ip = DiskInode(type=2, major=0, minor=0, nlink=1, size=4321, addrs=addrs)
    data = ip.pack()
    assert len(data) == DiskInode.SIZE
    back = DiskInode.unpack(data)
    assert back == ip
    assert back.addrs == addrs


def test_disk_inode_defaults_are_zero():
    ip = DiskInode.unpack(bytes(DiskInode.SIZE))
    assert ip == DiskInode()
    assert ip.addrs == [0] * (NDIRECT + 1)


def test_disk_inode_negative_short_round_trip():
    ip = DiskInode(type=3, major=-1, minor=7)
    assert DiskInode.unpack(ip.pack()).major == -1


def test_disk_inode_rejects_wrong_address_count():
    with pytest.raises(ValueError):
        DiskInode(addrs=[0] * NDIRECT)


def test_dirent_wire_bytes():
    assert Dirent(1, ".").pack() == b"\x01\x00." + b"\x00" * 13


def test_dirent_round_trip():
    de = Dirent(7, "cat")
    assert Dirent.unpack(de.pack()) == de


def test_dirent_name_truncated_to_dirsiz():
    long_name = "abcdefghijklmnopq"
    de = Dirent.unpack(Dirent(3, long_name).pack())
    assert de.name == long_name[:DIRSIZ]
    assert len(de.name) == DIRSIZ


def test_inode_block_groups_inodes():
    sb = _sb()
    assert all(inode_block(i, sb) == sb.inodestart for i in range(IPB))
    assert inode_block(IPB, sb) == sb.inodestart + 1


def test_bitmap_block():
    sb = _sb()
    assert bitmap_block(0, sb) == sb.bmapstart
    assert bitmap_block(BPB - 1, sb) == sb.bmapstart
    assert bitmap_block(BPB, sb) == sb.bmapstart + 1


def test_kernel_panic_carries_message():
    exc = KernelPanic("ilock")
    assert str(exc) == "ilock"