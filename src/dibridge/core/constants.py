"""Protocol constants."""

from __future__ import annotations

# Zero-width space: keeps Discord from collapsing padded or blank content
ZERO_WIDTH_SPACE = "\u200b"

# Discord rejects single-character webhook usernames
USERNAME_PAD = "."

# Substitute for characters that may not appear in an IRC nick
NICK_PLACEHOLDER = "_"

# Tag appended to spoofed RELAYMSG nicks (e.g. "alice/d")
RELAY_TAG = "d"
RELAY_FALLBACK_DECORATION = "[d]"

DEFAULT_AVATAR_URL = "https://robohash.org/${USERNAME}.png?set=set4"
DEFAULT_IRC_NICK = "~d"

# IRC lines are capped at 512 bytes including prefix, command, target and CRLF
IRC_LINE_MAX_BYTES = 450
