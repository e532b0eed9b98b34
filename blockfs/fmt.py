"""Minimal printf-style formatting as used by user programs and the kernel."""

from __future__ import annotations

import operator
from collections.abc import Iterator
from typing import Any

from blockfs.layout import KernelPanic

_LOWER = "0123456789abcdef"
_UPPER = "0123456789ABCDEF"


def format_int(value: int, base: int, signed: bool, upper: bool) -> str:
    """Render value as a 32-bit integer in the given base."""
    if not 2 <= base <= 16:
        raise ValueError("base must be between 2 and 16")
    digits = _UPPER if upper else _LOWER
    wrapped = ((operator.index(value) + 2**31) % 2**32) - 2**31
    negative = signed and wrapped < 0
    x = -wrapped if negative else wrapped & 0xFFFFFFFF
    out = []
    while True:
        out.append(digits[x % base])
        x //= base
        if not x:
            break
    if negative:
        out.append("-")
    return "".join(reversed(out))


def _render(fmt: str, args: tuple[Any, ...], *, upper: bool, with_char: bool) -> str:
    arg_iter: Iterator[Any] = iter(args)

    def next_arg() -> Any:
        try:
            return next(arg_iter)
        except StopIteration:
            raise TypeError("not enough arguments for format string") from None

    out: list[str] = []
    chars = iter(fmt)
    for c in chars:
        if c != "%":
            out.append(c)
            continue
        spec = next(chars, None)
        if spec is None:
            break
        if spec == "d":
            out.append(format_int(next_arg(), 10, True, upper))
        elif spec in ("x", "p"):
            out.append(format_int(next_arg(), 16, False, upper))
        elif spec == "s":
            s = next_arg()
            out.append("(null)" if s is None else str(s))
        elif spec == "c" and with_char:
            ch = next_arg()
            out.append(chr(operator.index(ch) & 0xFF) if not isinstance(ch, str) else ch)
        elif spec == "%":
            out.append("%")
        else:
            out.append("%" + spec)
    return "".join(out)


def sprintf(fmt: str, *args: Any) -> str:
    """Format like the user-level printf: %d %x %p %s %c %%, upper-case hex."""
    return _render(fmt, args, upper=True, with_char=True)


def ksprintf(fmt: str, *args: Any) -> str:
    """Format like the kernel's cprintf: %d %x %p %s %%, lower-case hex."""
    if fmt is None:
        raise KernelPanic("null fmt")
    return _render(fmt, args, upper=False, with_char=False)