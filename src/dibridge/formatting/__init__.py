"""Content transformation for cross-protocol bridging."""

from dibridge.formatting.discord_content import avatar_from_template, pad_username, preserve_whitespace
from dibridge.formatting.emoji import EmojiCache, EmojiEntry
from dibridge.formatting.filters import FilterSet, GlobFilter, matches_any
from dibridge.formatting.irc_lines import split_irc_line
from dibridge.formatting.irc_to_discord import irc_to_discord, parse, render
from dibridge.formatting.nick import sanitize_nickname

__all__ = [
    "EmojiCache",
    "EmojiEntry",
    "FilterSet",
    "GlobFilter",
    "avatar_from_template",
    "irc_to_discord",
    "matches_any",
    "pad_username",
    "parse",
    "preserve_whitespace",
    "render",
    "sanitize_nickname",
    "split_irc_line",
]
