"""Shape IRC-originated content and names for Discord's renderer."""

from __future__ import annotations

from dibridge.core.constants import USERNAME_PAD, ZERO_WIDTH_SPACE


def preserve_whitespace(content: str) -> str:
    """Wrap blank or padded content in zero-width spaces.

    Discord trims leading/trailing whitespace and refuses empty messages, so
    three spaces sent from IRC would otherwise never show up.
    """
    if content == "" or content.strip() != content:
        return f"{ZERO_WIDTH_SPACE}{content}{ZERO_WIDTH_SPACE}"
    return content


def pad_username(username: str) -> str:
    """Discord rejects single-character webhook usernames."""
    if len(username) == 1:
        return username + USERNAME_PAD
    return username


def avatar_from_template(template: str, username: str) -> str:
    return template.replace("${USERNAME}", username)
