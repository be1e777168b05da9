"""Protocol adapters and the connection surfaces the router relies on."""

from dibridge.adapters.base import AdapterBase, DiscordConnection, IRCConnection
from dibridge.adapters.discord import DiscordAdapter
from dibridge.adapters.irc import IRCClient, IRCListener

__all__ = ["AdapterBase", "DiscordAdapter", "DiscordConnection", "IRCClient", "IRCConnection", "IRCListener"]
