import pytest

from blockfs.cycles import UINT32_MAX, Cycles


def test_subtract_without_borrow():
    assert Cycles(5, 2) - Cycles(3, 1) == Cycles(2, 1)


def test_subtract_with_borrow():
    assert Cycles(0, 1) - Cycles(1, 0) == Cycles(UINT32_MAX, 0)


def test_subtract_wraps_high_word():
    assert Cycles(0, 0) - Cycles(0, 1) == Cycles(0, UINT32_MAX)


def test_subtract_self_is_zero():
    c = Cycles(123, 456)
    assert c - c == Cycles(0, 0)
    assert float(c - c) == 0.0


def test_float_uses_uint32_max_as_high_weight():
    assert float(Cycles(0, 1)) == float(UINT32_MAX)
    assert float(Cycles(7, 0)) == 7.0


def test_rejects_out_of_range_words():
    with pytest.raises(ValueError):
        Cycles(2**32, 0)
    with pytest.raises(ValueError):
        Cycles(0, -1)


def test_now_is_monotonic():
    start = Cycles.now()
    end = Cycles.now()
    assert float(end - start) >= 0.0