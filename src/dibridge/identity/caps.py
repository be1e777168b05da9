"""RELAYMSG capability negotiation outcome.

draft/relaymsg: "If this capability has a value, the given characters are
nickname separators. These characters aren't allowed in normal nicknames, and
if given one MUST be present in spoofed nicknames."
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from loguru import logger

RELAYMSG_CAPABILITIES = ("draft/relaymsg", "overdrivenetworks.com/relaymsg")


@dataclass(frozen=True)
class RelayCapability:
    """Whether RELAYMSG was negotiated, and the separators the server reserved."""

    negotiated: bool = False
    separators: str = ""

    @property
    def separator(self) -> str | None:
        return self.separators[0] if self.separators else None


NOT_NEGOTIATED = RelayCapability()


class CapabilityNegotiator:
    """Records what the server offered during CAP LS and settles once after CAP ACK.

    One instance lives for the lifetime of the IRC client; ``reset`` on
    disconnect so the next handshake is resolved from scratch.
    """

    def __init__(self) -> None:
        self._offered: dict[str, str] = {}
        self._result: RelayCapability | None = None

    def offer(self, capability: str, value: object) -> bool:
        """Record an advertised RELAYMSG capability. Returns True to request it."""
        separators = value if isinstance(value, str) else ""
        self._offered[capability] = separators
        logger.debug("IRC: server offers {} (separators={!r})", capability, separators)
        return True

    def settle(self, acknowledged: Mapping[str, object]) -> RelayCapability:
        """Resolve the negotiation outcome from the acknowledged capability table.

        Only the first call after a handshake computes the result; later calls
        return the same object until ``reset``.
        """
        if self._result is not None:
            return self._result
        result = NOT_NEGOTIATED
        for name in RELAYMSG_CAPABILITIES:
            if acknowledged.get(name):
                result = RelayCapability(negotiated=True, separators=self._offered.get(name, ""))
                break
        self._result = result
        if result.negotiated:
            logger.info("IRC: RELAYMSG negotiated (separators={!r})", result.separators)
        else:
            logger.info("IRC: RELAYMSG not available; using classic <nick> puppeting")
        return result

    @property
    def result(self) -> RelayCapability:
        """Settled outcome, or NOT_NEGOTIATED before the handshake finishes."""
        return self._result or NOT_NEGOTIATED

    def reset(self) -> None:
        self._offered.clear()
        self._result = None
