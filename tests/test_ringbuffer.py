import pytest

from blockfs.ringbuffer import RingBuffer


def test_new_buffer_is_empty():
    rb = RingBuffer(3)
    assert rb.is_empty()
    assert not rb.is_full()
    assert len(rb) == 0


def test_fifo_order():
    rb = RingBuffer(4)
    for x in ("a", "b", "c"):
        rb.write(x)
    assert len(rb) == 3
    assert [rb.read() for _ in range(3)] == ["a", "b", "c"]
    assert rb.is_empty()


def test_full_buffer_overwrites_oldest():
    rb = RingBuffer(3)
    for x in (1, 2, 3):
        rb.write(x)
    assert rb.is_full()
    rb.write(4)
    assert len(rb) == 3
    assert [rb.read() for _ in range(3)] == [2, 3, 4]


def test_wraparound_many_times():
    rb = RingBuffer(2)
    for x in range(10):
        rb.write(x)
        assert rb.read() == x
    assert rb.is_empty()


def test_read_empty_raises():
    rb = RingBuffer(1)
    with pytest.raises(IndexError):
        rb.read()


def test_zero_capacity_rejected():
    with pytest.raises(ValueError):
        RingBuffer(0)


def test_capacity_reported():
    assert RingBuffer(5).capacity == 5