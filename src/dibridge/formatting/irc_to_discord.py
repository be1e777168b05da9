"""Convert IRC control codes to Discord markdown.

Conversion runs in two steps: ``parse`` splits a line into styled blocks and
``render`` writes those blocks out as markdown. Colors are parsed so they can
be stripped cleanly but have no markdown equivalent.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace

# IRC control codes
BOLD = "\x02"
COLOR = "\x03"
HEX_COLOR = "\x04"
RESET = "\x0f"
MONOSPACE = "\x11"
REVERSE = "\x16"
ITALIC = "\x1d"
STRIKETHROUGH = "\x1e"
UNDERLINE = "\x1f"

_COLOR_RE = re.compile(r"(\d{1,2})?(?:,(\d{1,2}))?")
_HEX_COLOR_RE = re.compile(r"([0-9a-fA-F]{6})?(?:,([0-9a-fA-F]{6}))?")


@dataclass(frozen=True)
class Style:
    """Formatting state active for a run of text."""

    bold: bool = False
    italic: bool = False
    underline: bool = False
    strikethrough: bool = False
    monospace: bool = False
    foreground: str | None = None
    background: str | None = None


@dataclass(frozen=True)
class Block:
    """Run of text sharing a single style."""

    text: str
    style: Style = Style()


_TOGGLES = {
    BOLD: "bold",
    ITALIC: "italic",
    UNDERLINE: "underline",
    STRIKETHROUGH: "strikethrough",
    MONOSPACE: "monospace",
}

# Opening/closing markers, outermost first
_MARKERS = (
    ("monospace", "`"),
    ("bold", "**"),
    ("italic", "*"),
    ("underline", "__"),
    ("strikethrough", "~~"),
)


def parse(text: str) -> list[Block]:
    """Split IRC-formatted text into blocks of uniformly styled text."""
    blocks: list[Block] = []
    style = Style()
    buf: list[str] = []

    def flush() -> None:
        if buf:
            blocks.append(Block("".join(buf), style))
            buf.clear()

    i = 0
    while i < len(text):
        c = text[i]
        i += 1
        if c in _TOGGLES:
            flush()
            attr = _TOGGLES[c]
            style = replace(style, **{attr: not getattr(style, attr)})
        elif c == COLOR or c == HEX_COLOR:
            flush()
            pattern = _COLOR_RE if c == COLOR else _HEX_COLOR_RE
            m = pattern.match(text, i)
            fg, bg = m.group(1), m.group(2)
            i = m.end()
            if fg is None and bg is None:
                # Bare color code resets both colors
                style = replace(style, foreground=None, background=None)
            else:
                style = replace(
                    style,
                    foreground=fg if fg is not None else style.foreground,
                    background=bg if bg is not None else style.background,
                )
        elif c == RESET:
            flush()
            style = Style()
        elif c == REVERSE:
            # Swapping colors means nothing once colors are dropped
            continue
        else:
            buf.append(c)
    flush()
    return blocks


def _wrap(text: str, style: Style) -> str:
    """Wrap text in markers; leading/trailing whitespace stays outside or Discord ignores them."""
    core = text.strip()
    if not core:
        return text
    lead = text[: len(text) - len(text.lstrip())]
    trail = text[len(text.rstrip()) :]
    opening = "".join(marker for attr, marker in _MARKERS if getattr(style, attr))
    closing = "".join(marker for attr, marker in reversed(_MARKERS) if getattr(style, attr))
    return f"{lead}{opening}{core}{closing}{trail}"


def render(blocks: list[Block]) -> str:
    """Render parsed blocks as Discord markdown."""
    return "".join(_wrap(block.text, block.style) for block in blocks)


def irc_to_discord(content: str) -> str:
    """Convert IRC formatting to Discord markdown. Colors are stripped."""
    if not content:
        return content
    return render(parse(content))
