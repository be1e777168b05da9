"""Glob filters for ignored hostmasks and filtered message text."""

from __future__ import annotations

import fnmatch
import re
from collections.abc import Iterable
from dataclasses import dataclass, field


@dataclass(frozen=True)
class GlobFilter:
    """Compiled glob pattern (``*``, ``?``, ``[...]``), matched against the whole subject."""

    pattern: str
    _regex: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_regex", re.compile(fnmatch.translate(self.pattern)))

    def match(self, subject: str) -> bool:
        return self._regex.match(subject) is not None


def compile_globs(patterns: Iterable[str]) -> tuple[GlobFilter, ...]:
    return tuple(GlobFilter(str(p)) for p in patterns)


def matches_any(filters: Iterable[GlobFilter], subject: str) -> bool:
    """True if any filter matches; a match drops the whole message."""
    return any(f.match(subject) for f in filters)


@dataclass(frozen=True)
class FilterSet:
    """Immutable snapshot of every ignore/filter list.

    Replaced wholesale on reload, so readers never see a half-applied update.
    """

    irc_ignores: tuple[GlobFilter, ...] = ()
    irc_filtered_messages: tuple[GlobFilter, ...] = ()
    discord_filtered_messages: tuple[GlobFilter, ...] = ()
    discord_ignores: frozenset[str] = frozenset()
    discord_allowed: frozenset[str] = frozenset()

    @classmethod
    def build(
        cls,
        *,
        irc_ignores: Iterable[str] = (),
        irc_filtered_messages: Iterable[str] = (),
        discord_filtered_messages: Iterable[str] = (),
        discord_ignores: Iterable[str] = (),
        discord_allowed: Iterable[str] = (),
    ) -> FilterSet:
        return cls(
            irc_ignores=compile_globs(irc_ignores),
            irc_filtered_messages=compile_globs(irc_filtered_messages),
            discord_filtered_messages=compile_globs(discord_filtered_messages),
            discord_ignores=frozenset(str(i) for i in discord_ignores),
            discord_allowed=frozenset(str(i) for i in discord_allowed),
        )

    def is_ignored_hostmask(self, hostmask: str) -> bool:
        return matches_any(self.irc_ignores, hostmask)

    def is_filtered_irc_message(self, text: str) -> bool:
        return matches_any(self.irc_filtered_messages, text)

    def is_filtered_discord_message(self, text: str) -> bool:
        return matches_any(self.discord_filtered_messages, text)

    def is_bridged_discord_user(self, user_id: str) -> bool:
        """Ignore list wins; a non-empty allow list admits only its members."""
        if user_id in self.discord_ignores:
            return False
        return not self.discord_allowed or user_id in self.discord_allowed
