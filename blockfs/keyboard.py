"""Decoding of PC keyboard scan codes into characters."""

from __future__ import annotations

from collections.abc import Iterable

NO = 0

SHIFT = 1 << 0
CTL = 1 << 1
ALT = 1 << 2
CAPSLOCK = 1 << 3
NUMLOCK = 1 << 4
SCROLLLOCK = 1 << 5
E0ESC = 1 << 6

KEY_HOME = 0xE0
KEY_END = 0xE1
KEY_UP = 0xE2
KEY_DN = 0xE3
KEY_LF = 0xE4
KEY_RT = 0xE5
KEY_PGUP = 0xE6
KEY_PGDN = 0xE7
KEY_INS = 0xE8
KEY_DEL = 0xE9


def _ctrl(ch: str) -> int:
    return (ord(ch) - ord("@")) & 0xFF


def _table(prefix: Iterable[int], specials: dict[int, int]) -> tuple[int, ...]:
    table = [NO] * 256
    for code, value in enumerate(prefix):
        table[code] = value
    for code, value in specials.items():
        table[code] = value
    return tuple(table)


_SHIFTCODE = _table((), {0x1D: CTL, 0x2A: SHIFT, 0x36: SHIFT, 0x38: ALT, 0x9D: CTL, 0xB8: ALT})
_TOGGLECODE = _table((), {0x3A: CAPSLOCK, 0x45: NUMLOCK, 0x46: SCROLLLOCK})

_EXTENDED = {
    0xC8: KEY_UP,
    0xD0: KEY_DN,
    0xC9: KEY_PGUP,
    0xD1: KEY_PGDN,
    0xCB: KEY_LF,
    0xCD: KEY_RT,
    0x97: KEY_HOME,
    0xCF: KEY_END,
    0xD2: KEY_INS,
    0xD3: KEY_DEL,
}

_KEYPAD_ROWS = (
    "\x00 \x00\x00\x00\x00\x00\x00",
    "\x00\x00\x00\x00\x00\x00\x007",
    "89-456+1",
    "230.\x00\x00\x00\x00",
)

_NORMAL_ROWS = (
    "\x00\x1b123456",
    "7890-=\b\t",
    "qwertyui",
    "op[]\n\x00as",
    "dfghjkl;",
    "'`\x00\\zxcv",
    "bnm,./\x00*",
) + _KEYPAD_ROWS

_SHIFT_ROWS = (
    "\x00\x1b!@#$%^",
    "&*()_+\b\t",
    "QWERTYUI",
    "OP{}\n\x00AS",
    "DFGHJKL:",
    '"~\x00|ZXCV',
    "BNM<>?\x00*",
) + _KEYPAD_ROWS

# '.' marks an unmapped key; '\r' is kept as is; other characters are control codes.
_CTL_ROWS = "................" "QWERTYUI" "OP..\r.AS" "DFGHJKL." "...\\ZXCV" "BNM../.."

_NORMALMAP = _table(
    (ord(c) for c in "".join(_NORMAL_ROWS)),
    {**_EXTENDED, 0x9C: ord("\n"), 0xB5: ord("/")},
)
_SHIFTMAP = _table(
    (ord(c) for c in "".join(_SHIFT_ROWS)),
    {**_EXTENDED, 0x9C: ord("\n"), 0xB5: ord("/")},
)
_CTLMAP = _table(
    (NO if c == "." else ord(c) if c == "\r" else _ctrl(c) for c in _CTL_ROWS),
    {**_EXTENDED, 0x9C: ord("\r"), 0xB5: _ctrl("/")},
)

_CHARCODE = (_NORMALMAP, _SHIFTMAP, _CTLMAP, _CTLMAP)


class Keyboard:
    """Tracks modifier state and turns scan codes into character codes."""

    def __init__(self) -> None:
        self.state = 0

    def _scan(self, data: int) -> int:
        data &= 0xFF
        if data == 0xE0:
            self.state |= E0ESC
            return NO
        if data & 0x80:
            if not self.state & E0ESC:
                data &= 0x7F
            self.state &= ~(_SHIFTCODE[data] | E0ESC)
            return NO
        if self.state & E0ESC:
            data |= 0x80
            self.state &= ~E0ESC

        self.state |= _SHIFTCODE[data]
        self.state ^= _TOGGLECODE[data]
        c = _CHARCODE[self.state & (CTL | SHIFT)][data]
        if self.state & CAPSLOCK:
            if ord("a") <= c <= ord("z"):
                c += ord("A") - ord("a")
            elif ord("A") <= c <= ord("Z"):
                c += ord("a") - ord("A")
        return c

    def feed(self, data: Iterable[int]) -> list[int]:
        """Process scan codes and return the character codes they produce."""
        return [c for c in map(self._scan, data) if c != NO]