"""Tests for IRCClient and its helpers (dibridge/adapters/irc/client.py, throttle.py)."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pydle
import pytest

from dibridge.adapters.irc import client as client_module
from dibridge.adapters.irc.client import _MAX_ATTEMPTS, IRCClient, _connect_with_backoff, parse_server
from dibridge.adapters.irc.throttle import TokenBucket
from dibridge.events import ChannelJoined, Join, Kick, Nick, Part, PrivateMessage, Quit, Welcome
from dibridge.identity.caps import CapabilityNegotiator

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_client(nick: str = "~d") -> tuple[IRCClient, AsyncMock]:
    client = IRCClient(nick, negotiator=CapabilityNegotiator())
    client.nickname = nick
    handler = MagicMock()
    handler.handle_irc_event = AsyncMock()
    client.set_handler(handler)
    return client, handler.handle_irc_event


def _mock_message(params=None, tags=None, source="alice!al@host"):
    msg = MagicMock()
    msg.params = params or []
    msg.tags = tags or {}
    msg.source = source
    return msg


def _emitted(emit: AsyncMock) -> list:
    return [c.args[0] for c in emit.await_args_list]


async def _wait_for(predicate) -> None:
    for _ in range(100):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


# ---------------------------------------------------------------------------
# parse_server
# ---------------------------------------------------------------------------


class TestParseServer:
    def test_explicit_port(self):
        assert parse_server("irc.example.org:7000") == ("irc.example.org", 7000)

    def test_tls_default_port(self):
        assert parse_server("irc.example.org") == ("irc.example.org", 6697)

    def test_plain_default_port(self):
        assert parse_server("irc.example.org", tls=False) == ("irc.example.org", 6667)


# ---------------------------------------------------------------------------
# Reconnect loop
# ---------------------------------------------------------------------------


class TestConnectWithBackoff:
    @pytest.mark.asyncio
    async def test_retries_after_failure(self):
        client = MagicMock()
        client.connect = AsyncMock(side_effect=[OSError("refused"), None])
        client.wait_disconnected = AsyncMock()
        client.closing = True

        with patch.object(client_module.asyncio, "sleep", AsyncMock()) as sleep:
            await _connect_with_backoff(client, "irc.example.org", 6697, tls=True)

        assert client.connect.await_count == 2
        sleep.assert_awaited_once()
        client.connect.assert_awaited_with(hostname="irc.example.org", port=6697, tls=True)

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        client = MagicMock()
        client.connect = AsyncMock(side_effect=OSError("refused"))

        with patch.object(client_module.asyncio, "sleep", AsyncMock()), pytest.raises(OSError):
            await _connect_with_backoff(client, "irc.example.org", 6697)

        assert client.connect.await_count == _MAX_ATTEMPTS

    @pytest.mark.asyncio
    async def test_reconnects_after_unexpected_disconnect(self):
        client = MagicMock()
        client.connect = AsyncMock()
        client.closing = False

        async def _drop():
            # Second disconnect is the shutdown
            if client.wait_disconnected.await_count == 2:
                client.closing = True

        client.wait_disconnected = AsyncMock(side_effect=_drop)

        with patch.object(client_module.asyncio, "sleep", AsyncMock()):
            await _connect_with_backoff(client, "irc.example.org", 6697)

        assert client.connect.await_count == 2


# ---------------------------------------------------------------------------
# Capabilities
# ---------------------------------------------------------------------------


class TestCapabilities:
    @pytest.mark.asyncio
    async def test_relaymsg_requested_and_recorded(self):
        client, _ = _make_client()

        assert await client.on_capability_draft_relaymsg_available("/") is True
        assert client.negotiator.settle({"draft/relaymsg": True}).separators == "/"

    @pytest.mark.asyncio
    async def test_vendor_relaymsg_requested(self):
        client, _ = _make_client()

        assert await client.on_capability_overdrivenetworks_com_relaymsg_available(True) is True

    @pytest.mark.asyncio
    async def test_message_tags_requested(self):
        client, _ = _make_client()

        assert await client.on_capability_message_tags_available(None) is True


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_on_connect_emits_welcome_and_starts_consumer(self):
        client, emit = _make_client()
        client._capabilities = {"draft/relaymsg": True}

        with patch.object(pydle.Client, "on_connect", AsyncMock()):
            await client.on_connect()

        assert _emitted(emit) == [Welcome(nickname="~d", capabilities={"draft/relaymsg": True})]
        assert client._consumer_task is not None
        await client._stop_consumer()

    @pytest.mark.asyncio
    async def test_on_disconnect_resets_negotiation(self):
        client, _ = _make_client()
        client.negotiator.offer("draft/relaymsg", "/")
        client.negotiator.settle({"draft/relaymsg": True})

        with patch.object(pydle.Client, "on_disconnect", AsyncMock()):
            await client.on_disconnect(expected=False)

        assert not client.negotiator.result.negotiated
        await asyncio.wait_for(client.wait_disconnected(), timeout=1)

    @pytest.mark.asyncio
    async def test_close_without_connection(self):
        client, _ = _make_client()

        await client.close()

        assert client.closing

    @pytest.mark.asyncio
    async def test_listener_failure_is_contained(self):
        client, emit = _make_client()
        emit.side_effect = RuntimeError("boom")

        with patch.object(pydle.Client, "on_join", AsyncMock()):
            await client.on_join("#chan", "alice")

        emit.assert_awaited_once()


# ---------------------------------------------------------------------------
# Outbound queue
# ---------------------------------------------------------------------------


class TestOutbound:
    @pytest.mark.asyncio
    async def test_commands_are_queued_not_sent(self):
        client, _ = _make_client()

        client.privmsg("#chan", "hello")
        client.send_command("JOIN", "#a,#b", "key")

        assert client.pending_lines == 2

    @pytest.mark.asyncio
    async def test_consumer_sends_in_order(self):
        client, _ = _make_client()
        client.rawmsg = AsyncMock()
        client.raw = AsyncMock()
        client._consumer_task = asyncio.create_task(client._consume_outbound())

        client.send_raw("MODE ~d +B")
        client.privmsg("#chan", "hello")

        await _wait_for(lambda: client.rawmsg.await_count == 1)
        client.raw.assert_awaited_once_with("MODE ~d +B\r\n")
        client.rawmsg.assert_awaited_once_with("PRIVMSG", "#chan", "hello")
        await client._stop_consumer()

    @pytest.mark.asyncio
    async def test_consumer_survives_send_failure(self):
        client, _ = _make_client()
        client.rawmsg = AsyncMock(side_effect=[ConnectionError("gone"), None])
        client._consumer_task = asyncio.create_task(client._consume_outbound())

        client.privmsg("#chan", "lost")
        client.privmsg("#chan", "sent")

        await _wait_for(lambda: client.rawmsg.await_count == 2)
        await client._stop_consumer()


# ---------------------------------------------------------------------------
# Inbound events
# ---------------------------------------------------------------------------


class TestInbound:
    @pytest.mark.asyncio
    async def test_channel_message_carries_hostmask(self):
        client, emit = _make_client()
        client.users["alice"] = {"username": "al", "hostname": "host.example"}

        with patch.object(pydle.Client, "on_channel_message", AsyncMock()):
            await client.on_channel_message("#chan", "alice", "hello")

        assert _emitted(emit) == [PrivateMessage("#chan", "alice", "alice!al@host.example", "hello", tags={})]

    @pytest.mark.asyncio
    async def test_unknown_user_hostmask(self):
        client, emit = _make_client()

        with patch.object(pydle.Client, "on_channel_notice", AsyncMock()):
            await client.on_channel_notice("#chan", "ghost", "boo")

        evt = _emitted(emit)[0]
        assert evt.hostmask == "ghost!*@*"
        assert evt.is_notice

    @pytest.mark.asyncio
    async def test_ctcp_action_line_emits_action(self):
        client, emit = _make_client()

        await client.on_raw_privmsg(_mock_message(params=["#chan", "\x01ACTION waves\x01"], tags={"msgid": "1"}))

        assert _emitted(emit) == [
            PrivateMessage("#chan", "alice", "alice!al@host", "waves", is_action=True, tags={"msgid": "1"})
        ]
        assert client._message_tags == {}

    @pytest.mark.asyncio
    async def test_empty_action(self):
        client, emit = _make_client()

        await client.on_ctcp_action("alice", "#chan", None)

        evt = _emitted(emit)[0]
        assert evt.is_action
        assert evt.text == ""

    @pytest.mark.asyncio
    async def test_tags_visible_while_dispatching(self):
        client, _ = _make_client()
        seen = {}

        async def _dispatch(message):
            seen.update(client._message_tags)

        msg = _mock_message(params=["#chan", "hi"], tags={"draft/relaymsg": "~d"})
        with patch.object(pydle.Client, "on_raw_privmsg", AsyncMock(side_effect=_dispatch)):
            await client.on_raw_privmsg(msg)

        assert seen == {"draft/relaymsg": "~d"}
        assert client._message_tags == {}

    @pytest.mark.asyncio
    async def test_end_of_names_emits_channel_joined(self):
        client, emit = _make_client()

        with patch.object(pydle.Client, "on_raw_366", AsyncMock()):
            await client.on_raw_366(_mock_message(params=["~d", "#chan", "End of /NAMES list."]))

        assert _emitted(emit) == [ChannelJoined("#chan")]

    @pytest.mark.asyncio
    async def test_presence_events(self):
        client, emit = _make_client()
        base = pydle.Client

        with (
            patch.object(base, "on_join", AsyncMock()),
            patch.object(base, "on_part", AsyncMock()),
            patch.object(base, "on_quit", AsyncMock()),
            patch.object(base, "on_kick", AsyncMock()),
            patch.object(base, "on_nick_change", AsyncMock()),
        ):
            await client.on_join("#chan", "bob")
            await client.on_part("#chan", "bob", "bye")
            await client.on_quit("bob")
            await client.on_kick("#chan", "bob", "op", "spam")
            await client.on_nick_change("bob", "robert")

        assert _emitted(emit) == [
            Join("#chan", "bob", "bob!*@*"),
            Part("#chan", "bob", "bob!*@*", "bye"),
            Quit("bob", "bob!*@*"),
            Kick("#chan", "bob", "op", "op!*@*", "spam"),
            Nick("bob", "robert", "robert!*@*"),
        ]

    @pytest.mark.asyncio
    async def test_channel_has_user(self):
        client, _ = _make_client()
        client.channels["#chan"] = {"users": {"Bob"}}

        assert client.channel_has_user("#chan", "bob")
        assert not client.channel_has_user("#chan", "alice")
        assert not client.channel_has_user("#other", "bob")


# ---------------------------------------------------------------------------
# TokenBucket
# ---------------------------------------------------------------------------


class TestTokenBucket:
    def test_rejects_zero_limit(self):
        with pytest.raises(ValueError):
            TokenBucket(0)

    def test_burst_then_empty(self):
        with patch("dibridge.adapters.irc.throttle.time") as fake_time:
            fake_time.monotonic.return_value = 100.0
            bucket = TokenBucket(3, refill_rate=1)

            assert [bucket.try_take() for _ in range(4)] == [True, True, True, False]
            assert bucket.delay() == pytest.approx(1.0)

    def test_refills_up_to_limit(self):
        with patch("dibridge.adapters.irc.throttle.time") as fake_time:
            fake_time.monotonic.return_value = 100.0
            bucket = TokenBucket(2, refill_rate=1)
            bucket.try_take()
            bucket.try_take()

            fake_time.monotonic.return_value = 101.5
            assert bucket.tokens == pytest.approx(1.5)

            fake_time.monotonic.return_value = 200.0
            assert bucket.tokens == pytest.approx(2.0)

    @pytest.mark.asyncio
    async def test_take_waits_for_refill(self):
        bucket = TokenBucket(1, refill_rate=50)
        await bucket.take()

        await asyncio.wait_for(bucket.take(), timeout=1)

        assert bucket.tokens < 1
