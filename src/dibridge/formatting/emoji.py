"""Custom emoji cache and :shortcode: substitution for IRC -> Discord."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from loguru import logger

_SHORTCODE_RE = re.compile(r":([a-zA-Z_-]+):")


@dataclass(frozen=True)
class EmojiEntry:
    """A guild custom emoji."""

    name: str
    id: str
    animated: bool = False

    @property
    def markup(self) -> str:
        """Discord message markup: <:name:id> or <a:name:id> when animated."""
        prefix = "a" if self.animated else ""
        return f"<{prefix}:{self.name}:{self.id}>"


class EmojiCache:
    """Guild emoji keyed by lower-cased name.

    Written from Discord gateway handlers, read by the router. Each key is
    replaced independently (last writer wins); there is no cross-key atomicity.
    """

    def __init__(self) -> None:
        self._emoji: dict[str, EmojiEntry] = {}

    def __len__(self) -> int:
        return len(self._emoji)

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._emoji

    def get(self, name: str) -> EmojiEntry | None:
        return self._emoji.get(name.lower())

    def put(self, entry: EmojiEntry) -> None:
        self._emoji[entry.name.lower()] = entry

    def update(self, entries: Iterable[EmojiEntry]) -> None:
        """Store every entry; existing names are overwritten, others are kept."""
        count = 0
        for entry in entries:
            self.put(entry)
            count += 1
        logger.debug("Emoji cache updated: {} entries written, {} total", count, len(self._emoji))

    def substitute(self, content: str) -> str:
        """Replace known :shortcode: tokens with Discord emoji markup; unknown ones stay verbatim."""

        def _replace(m: re.Match[str]) -> str:
            entry = self.get(m.group(1))
            return entry.markup if entry else m.group(0)

        return _SHORTCODE_RE.sub(_replace, content)
