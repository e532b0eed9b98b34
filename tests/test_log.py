import struct

import pytest

from blockfs.bufcache import BufferCache
from blockfs.disk import B_DIRTY, MemDisk
from blockfs.layout import BSIZE, LOGSIZE, NBUF, KernelPanic, Superblock
from blockfs.log import Log

NBLOCKS = 64
LOGSTART = 2


def block(disk, n):
    return bytes(disk.image[n * BSIZE : (n + 1) * BSIZE])


def header_count(disk):
    return struct.unpack_from("<i", disk.image, LOGSTART * BSIZE)[0]


def setup(nlog=LOGSIZE, image=None):
    disk = MemDisk(image if image is not None else bytes(NBLOCKS * BSIZE), 1)
    cache = BufferCache(disk, NBUF)
    sb = Superblock(size=NBLOCKS, nlog=nlog, logstart=LOGSTART)
    return disk, cache, Log(cache, 1, sb)


def write_block(cache, log, blockno, payload):
    with cache.block(1, blockno) as buf:
        buf.data[:] = payload
        log.log_write(buf)
        return buf


def test_transaction_reaches_home_location():
    disk, cache, log = setup()
    with log.transaction():
        write_block(cache, log, 40, b"q" * BSIZE)
    assert block(disk, 40) == b"q" * BSIZE
    assert log.blocks == ()
    assert header_count(disk) == 0


def test_nothing_written_before_commit():
    disk, cache, log = setup()
    log.begin_op()
    write_block(cache, log, 40, b"r" * BSIZE)
    assert block(disk, 40) == bytes(BSIZE)
    assert log.blocks == (40,)
    log.end_op()
    assert block(disk, 40) == b"r" * BSIZE


def test_repeated_writes_are_absorbed():
    _, cache, log = setup()
    log.begin_op()
    write_block(cache, log, 40, b"a" * BSIZE)
    write_block(cache, log, 40, b"b" * BSIZE)
    assert log.blocks == (40,)
    log.end_op()


def test_logged_buffer_is_pinned_until_commit():
    _, cache, log = setup()
    log.begin_op()
    buf = write_block(cache, log, 41, b"p" * BSIZE)
    assert (buf.flags & B_DIRTY) == B_DIRTY
    log.end_op()
    assert (buf.flags & B_DIRTY) == 0


def test_log_write_outside_transaction_panics():
    _, cache, log = setup()
    with cache.block(1, 40) as buf:
        with pytest.raises(KernelPanic, match="outside of trans"):
            log.log_write(buf)


def test_too_big_transaction_panics():
    _, cache, log = setup(nlog=3)
    log.begin_op()
    write_block(cache, log, 40, b"1" * BSIZE)
    write_block(cache, log, 41, b"2" * BSIZE)
    with cache.block(1, 42) as buf:
        with pytest.raises(KernelPanic, match="too big"):
            log.log_write(buf)
    assert log.blocks == (40, 41)


def test_recovery_installs_committed_blocks():
    image = bytearray(NBLOCKS * BSIZE)
    image[LOGSTART * BSIZE : LOGSTART * BSIZE + 8] = struct.pack("<ii", 1, 50)
    image[(LOGSTART + 1) * BSIZE : (LOGSTART + 2) * BSIZE] = b"k" * BSIZE
    disk, _, log = setup(image=image)
    assert block(disk, 50) == b"k" * BSIZE
    assert header_count(disk) == 0
    assert log.blocks == ()


def test_commit_survives_as_recoverable_log():
    disk, cache, log = setup()
    with log.transaction():
        write_block(cache, log, 45, b"s" * BSIZE)
        write_block(cache, log, 46, b"t" * BSIZE)
    reopened, _, _ = setup(image=disk.image)
    assert block(reopened, 45) == b"s" * BSIZE
    assert block(reopened, 46) == b"t" * BSIZE


def test_transaction_ends_on_error():
    _, _, log = setup()
    with pytest.raises(ValueError):
        with log.transaction():
            assert log.outstanding == 1
            raise ValueError("boom")
    assert log.outstanding == 0
    assert log.committing is False


def test_concurrent_operations_commit_together():
    disk, cache, log = setup()
    log.begin_op()
    log.begin_op()
    write_block(cache, log, 47, b"c" * BSIZE)
    log.end_op()
    assert block(disk, 47) == bytes(BSIZE)
    assert log.outstanding == 1
    log.end_op()
    assert block(disk, 47) == b"c" * BSIZE