import pytest

from blockfs.bufcache import BufferCache
from blockfs.disk import B_DIRTY, B_VALID, MemDisk
from blockfs.layout import BSIZE, KernelPanic


def make_cache(nbuf=4, nblocks=16):
    disk = MemDisk(bytes(nblocks * BSIZE), 1)
    return disk, BufferCache(disk, nbuf)


def test_bread_returns_disk_contents_locked():
    disk, cache = make_cache()
    disk.image[2 * BSIZE : 3 * BSIZE] = b"a" * BSIZE
    buf = cache.bread(1, 2)
    assert bytes(buf.data) == b"a" * BSIZE
    assert buf.flags & B_VALID
    assert buf.lock.holding()
    cache.brelse(buf)
    assert not buf.lock.holding()


def test_block_context_releases_buffer():
    _, cache = make_cache()
    with cache.block(1, 3) as buf:
        assert buf.refcnt == 1
    assert buf.refcnt == 0
    assert not buf.lock.holding()


def test_bwrite_persists_to_disk():
    disk, cache = make_cache()
    with cache.block(1, 7) as buf:
        buf.data[:] = b"w" * BSIZE
        cache.bwrite(buf)
        assert not buf.flags & B_DIRTY
    assert bytes(disk.image[7 * BSIZE : 8 * BSIZE]) == b"w" * BSIZE


def test_bwrite_requires_lock():
    _, cache = make_cache()
    with cache.block(1, 1) as buf:
        pass
    with pytest.raises(KernelPanic, match="bwrite"):
        cache.bwrite(buf)


def test_brelse_requires_lock():
    _, cache = make_cache()
    buf = cache.bread(1, 1)
    cache.brelse(buf)
    with pytest.raises(KernelPanic, match="brelse"):
        cache.brelse(buf)


def test_cached_block_is_not_reread():
    disk, cache = make_cache()
    with cache.block(1, 4) as first:
        original = bytes(first.data)
    disk.image[4 * BSIZE : 5 * BSIZE] = b"z" * BSIZE
    with cache.block(1, 4) as second:
        assert second is first
        assert bytes(second.data) == original


def test_no_free_buffers_panics():
    _, cache = make_cache(nbuf=2)
    a = cache.bread(1, 1)
    b = cache.bread(1, 2)
    with pytest.raises(KernelPanic, match="no buffers"):
        cache.bread(1, 3)
    cache.brelse(a)
    cache.brelse(b)


def test_dirty_buffer_is_not_recycled():
    _, cache = make_cache(nbuf=1)
    with cache.block(1, 1) as buf:
        buf.flags |= B_DIRTY
    with pytest.raises(KernelPanic, match="no buffers"):
        cache.bread(1, 2)


def test_least_recently_used_buffer_is_recycled():
    _, cache = make_cache(nbuf=2)
    with cache.block(1, 1) as first:
        pass
    with cache.block(1, 2) as second:
        pass
    with cache.block(1, 3) as third:
        assert third is first
    with cache.block(1, 2) as again:
        assert again is second


def test_reading_held_block_twice_panics_and_keeps_count():
    _, cache = make_cache()
    buf = cache.bread(1, 5)
    with pytest.raises(KernelPanic):
        cache.bread(1, 5)
    assert buf.refcnt == 1
    cache.brelse(buf)
    assert buf.refcnt == 0


def test_zero_buffers_rejected():
    disk = MemDisk(bytes(BSIZE), 1)
    with pytest.raises(ValueError):
        BufferCache(disk, 0)