"""Split outbound text into IRC-sized lines."""

from __future__ import annotations

from dibridge.core.constants import IRC_LINE_MAX_BYTES


def split_irc_line(line: str, max_bytes: int = IRC_LINE_MAX_BYTES) -> list[str]:
    """Split one line into chunks of at most max_bytes UTF-8 bytes.

    Prefers breaking after the last space in the second half of a chunk and
    never splits a multi-byte character. Returns [] for an empty line.
    """
    if not line:
        return []
    if len(line.encode("utf-8")) <= max_bytes:
        return [line]

    chunks: list[str] = []
    current: list[str] = []
    size = 0
    last_space = -1
    for c in line:
        width = len(c.encode("utf-8"))
        # A word-boundary split can leave too little room for a wide character
        while size + width > max_bytes and current:
            if last_space >= 0 and last_space >= len(current) // 2:
                chunks.append("".join(current[: last_space + 1]))
                current = current[last_space + 1 :]
            else:
                chunks.append("".join(current))
                current = []
            size = sum(len(ch.encode("utf-8")) for ch in current)
            last_space = max((i for i, ch in enumerate(current) if ch == " "), default=-1)
        current.append(c)
        size += width
        if c == " ":
            last_space = len(current) - 1
    if current:
        chunks.append("".join(current))
    return chunks
