from blockfs.keyboard import CAPSLOCK, KEY_UP, SHIFT, Keyboard


def test_plain_letters_and_digits():
    kb = Keyboard()
    assert kb.feed(bytes([0x1E, 0x02])) == [ord("a"), ord("1")]


def test_release_produces_nothing():
    kb = Keyboard()
    assert kb.feed([0x9E]) == []


def test_shift_press_and_release():
    kb = Keyboard()
    assert kb.feed([0x2A, 0x1E, 0x02]) == [ord("A"), ord("!")]
    assert kb.state & SHIFT
    assert kb.feed([0xAA, 0x1E]) == [ord("a")]
    assert not kb.state & SHIFT


def test_control_letter():
    kb = Keyboard()
    assert kb.feed([0x1D, 0x19]) == [ord("P") - ord("@")]
    assert kb.feed([0x9D, 0x19]) == [ord("p")]


def test_caps_lock_toggles_case():
    kb = Keyboard()
    assert kb.feed([0x3A, 0xBA, 0x1E]) == [ord("A")]
    assert kb.state & CAPSLOCK
    assert kb.feed([0x2A, 0x1E, 0xAA]) == [ord("a")]
    assert kb.feed([0x3A, 0xBA, 0x1E]) == [ord("a")]


def test_caps_lock_leaves_digits():
    kb = Keyboard()
    assert kb.feed([0x3A, 0xBA, 0x02]) == [ord("1")]


def test_extended_key():
    kb = Keyboard()
    assert kb.feed([0x48]) == [ord("8")]
    assert kb.feed([0xE0, 0x48, 0xE0, 0xC8]) == [KEY_UP]


def test_enter_and_control_enter():
    kb = Keyboard()
    assert kb.feed([0x1C]) == [ord("\n")]
    assert kb.feed([0x1D, 0x1C]) == [ord("\r")]