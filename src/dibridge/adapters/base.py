"""Adapter interfaces: lifecycle base class and the connection surfaces the engine uses."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Protocol, runtime_checkable


class AdapterBase(ABC):
    """Interface for protocol adapters: a name plus start/stop."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Adapter identifier ('discord' or 'irc')."""
        ...

    @abstractmethod
    async def start(self) -> None:
        """Start the adapter (connect, register handlers)."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Stop the adapter (disconnect, cleanup)."""
        ...


@runtime_checkable
class IRCConnection(Protocol):
    """What the engine needs from the IRC side. Sends are queued, never awaited."""

    @property
    def nickname(self) -> str: ...

    def send_command(self, command: str, *params: str) -> None: ...

    def privmsg(self, target: str, text: str) -> None: ...

    def channel_has_user(self, channel: str, nick: str) -> bool: ...

    async def close(self) -> None: ...


@runtime_checkable
class DiscordConnection(Protocol):
    """What the engine needs from the Discord side."""

    async def channel_send(self, channel_id: str, content: str) -> None: ...

    async def send_as(self, channel_id: str, username: str, avatar_url: str, content: str) -> None: ...

    def get_avatar(self, username: str) -> str | None: ...

    async def close(self) -> None: ...
