"""Line-edited console input and character output."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable

INPUT_BUF = 128
BACKSPACE = 0x100


def _ctrl(ch: str) -> int:
    return ord(ch) - ord("@")


_CTRL_D = _ctrl("D")
_CTRL_H = _ctrl("H")
_CTRL_P = _ctrl("P")
_CTRL_U = _ctrl("U")
_DEL = 0x7F
_NL = ord("\n")
_CR = ord("\r")


class Console:
    """Collects typed characters into lines and echoes output to a sink.

    Input is buffered in a ring of INPUT_BUF bytes: characters up to the
    write index are ready for reading; those after it are still being edited.
    """

    def __init__(self, sink: Callable[[str], object]) -> None:
        self.sink = sink
        self._cond = threading.Condition()
        self._buf = bytearray(INPUT_BUF)
        self._r = 0  # read index
        self._w = 0  # write index
        self._e = 0  # edit index

    def _putc(self, c: int) -> None:
        if c == BACKSPACE:
            self.sink("\b \b")
        else:
            self.sink(chr(c & 0xFF))

    def interrupt(self, chars: Iterable[int | str]) -> bool:
        """Handle typed characters; returns whether a process listing was asked for."""
        procdump = False
        with self._cond:
            for c in chars:
                if isinstance(c, str):
                    c = ord(c)
                if c == _CTRL_P:
                    procdump = True
                elif c == _CTRL_U:
                    while (
                        self._e != self._w
                        and self._buf[(self._e - 1) % INPUT_BUF] != _NL
                    ):
                        self._e -= 1
                        self._putc(BACKSPACE)
                elif c in (_CTRL_H, _DEL):
                    if self._e != self._w:
                        self._e -= 1
                        self._putc(BACKSPACE)
                elif c != 0 and self._e - self._r < INPUT_BUF:
                    if c == _CR:
                        c = _NL
                    self._buf[self._e % INPUT_BUF] = c & 0xFF
                    self._e += 1
                    self._putc(c)
                    if c in (_NL, _CTRL_D) or self._e == self._r + INPUT_BUF:
                        self._w = self._e
                        self._cond.notify_all()
        return procdump

    def read(self, n: int) -> bytes:
        """Read up to n bytes, stopping after a newline; waits for a finished line.

        Control-D ends the read; if bytes were already read it is kept so the
        next read returns b"".
        """
        out = bytearray()
        with self._cond:
            while len(out) < n:
                while self._r == self._w:
                    self._cond.wait()
                c = self._buf[self._r % INPUT_BUF]
                self._r += 1
                if c == _CTRL_D:
                    if out:
                        self._r -= 1
                    break
                out.append(c)
                if c == _NL:
                    break
        return bytes(out)

    def write(self, data: bytes) -> int:
        """Send data to the sink; returns its length."""
        with self._cond:
            for b in bytes(data):
                self._putc(b)
        return len(data)