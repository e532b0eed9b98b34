"""A small grep supporting only the ^ . * $ operators."""

from __future__ import annotations

import sys
from collections.abc import Iterator, Sequence
from typing import TextIO

_BUFSIZE = 1024


def match(pattern: str, text: str) -> bool:
    """Return whether pattern occurs anywhere in text."""
    if pattern.startswith("^"):
        return _match_here(pattern[1:], text)
    return any(_match_here(pattern, text[start:]) for start in range(len(text) + 1))


def _match_here(pattern: str, text: str) -> bool:
    if not pattern:
        return True
    if len(pattern) > 1 and pattern[1] == "*":
        return _match_star(pattern[0], pattern[2:], text)
    if pattern == "$":
        return not text
    if text and pattern[0] in (".", text[0]):
        return _match_here(pattern[1:], text[1:])
    return False


def _match_star(c: str, pattern: str, text: str) -> bool:
    pos = 0
    while True:
        if _match_here(pattern, text[pos:]):
            return True
        if pos < len(text) and (text[pos] == c or c == "."):
            pos += 1
        else:
            return False


def grep(pattern: str, stream: TextIO) -> Iterator[str]:
    """Yield the newline-terminated lines of stream that match pattern.

    Input is read into a 1 KiB window; a line that does not fit, and a final
    line without a newline, are dropped.
    """
    pending = ""
    while chunk := stream.read(_BUFSIZE - 1 - len(pending)):
        pending += chunk
        *lines, rest = pending.split("\n")
        for line in lines:
            if match(pattern, line):
                yield line + "\n"
        pending = rest if lines else ""


def main(argv: Sequence[str] | None = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print("usage: grep pattern [file ...]", file=sys.stderr)
        return 1
    pattern, *paths = args
    if not paths:
        sys.stdout.writelines(grep(pattern, sys.stdin))
        return 0
    for path in paths:
        try:
            stream = open(path, encoding="utf-8", errors="surrogateescape", newline="")
        except OSError:
            print(f"grep: cannot open {path}")
            return 1
        with stream:
            sys.stdout.writelines(grep(pattern, stream))
    return 0