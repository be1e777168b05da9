"""IRC nickname sanitization for Discord usernames."""

from __future__ import annotations

import re

from loguru import logger
from unidecode import unidecode

from dibridge.core.constants import NICK_PLACEHOLDER

# RFC 2812 nick alphabet: letters, digits, "-" and the special characters
_INVALID_NICK_CHAR = re.compile(r"[^A-Za-z0-9\-_\[\]\\`^{}|]")
_SPACE_RUN = re.compile(r" +")


def sanitize_nickname(nick: str) -> str:
    """Convert a Discord username into something IRC accepts as a nick.

    Does not check whether the nick is taken on IRC or Discord. Never raises and
    never returns an empty string; the result is stable under re-sanitization.
    """
    if not nick:
        logger.opt(depth=1).error("Trying to sanitize an empty nick; using {!r}", NICK_PLACEHOLDER)
        return NICK_PLACEHOLDER

    # Keep the raw nick when transliteration empties it (e.g. an all-emoji name)
    ascii_nick = unidecode(nick)
    if ascii_nick:
        nick = ascii_nick

    if nick[0] == "-" or nick[0].isdigit():
        nick = NICK_PLACEHOLDER + nick

    nick = _INVALID_NICK_CHAR.sub(" ", nick)
    # One placeholder per run of invalid characters, not one per character
    return _SPACE_RUN.sub(NICK_PLACEHOLDER, nick)
