"""Non-blocking keyboard input from a terminal in raw mode."""

from __future__ import annotations

import os
import select

_ESCAPE_SEQUENCES = {
    b"\x1b[A": "up",
    b"\x1b[B": "down",
    b"\x1b[C": "right",
    b"\x1b[D": "left",
    b"\x1bOA": "up",
    b"\x1bOB": "down",
    b"\x1bOC": "right",
    b"\x1bOD": "left",
}

_CONTROL_KEYS = {
    b"\x03": "ctrl-c",
    b"\x1b": "esc",
    b"\r": "enter",
    b"\n": "enter",
    b" ": "space",
}


def parse_keys(data: bytes) -> list[str]:
    """Split a chunk of raw terminal input into key names."""

    keys: list[str] = []
    i = 0
    while i < len(data):
        if data[i : i + 1] == b"\x1b":
            sequence = data[i : i + 3]
            if sequence in _ESCAPE_SEQUENCES:
                keys.append(_ESCAPE_SEQUENCES[sequence])
                i += 3
                continue
            if data[i + 1 : i + 2] in (b"[", b"O"):
                # Unknown CSI/SS3 sequence: drop it up to its final byte
                j = i + 2
                while j < len(data) and not (0x40 <= data[j] <= 0x7E):
                    j += 1
                i = j + 1
                continue

        char = data[i : i + 1]
        if char in _CONTROL_KEYS:
            keys.append(_CONTROL_KEYS[char])
        else:
            decoded = char.decode("ascii", errors="ignore")
            if decoded.isprintable() and decoded:
                keys.append(decoded.lower())
        i += 1
    return keys


class KeyReader:
    """Poll a file descriptor for pending key presses without blocking."""

    def __init__(self, fd: int, *, chunk_size: int = 64) -> None:
        self.fd = fd
        self.chunk_size = chunk_size

    def read_keys(self, timeout: float = 0.0) -> list[str]:
        ready, _, _ = select.select([self.fd], [], [], timeout)
        if not ready:
            return []
        data = os.read(self.fd, self.chunk_size)
        return parse_keys(data)


__all__ = ["KeyReader", "parse_keys"]
