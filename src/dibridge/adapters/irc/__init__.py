"""IRC adapter package: pydle client, listener and flood control."""

from dibridge.adapters.irc.client import _MAX_ATTEMPTS, IRCClient, _connect_with_backoff, parse_server
from dibridge.adapters.irc.listener import IRCListener
from dibridge.adapters.irc.throttle import TokenBucket

__all__ = [
    "_MAX_ATTEMPTS",
    "IRCClient",
    "IRCListener",
    "TokenBucket",
    "_connect_with_backoff",
    "parse_server",
]
