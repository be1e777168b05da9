"""Identity: RELAYMSG capability outcome and Discord -> IRC nick representation."""

from dibridge.identity.caps import NOT_NEGOTIATED, RELAYMSG_CAPABILITIES, CapabilityNegotiator, RelayCapability
from dibridge.identity.resolver import ClassicPuppet, IdentityDecision, IdentityResolver, RelaySpoof, decoration_for

__all__ = [
    "NOT_NEGOTIATED",
    "RELAYMSG_CAPABILITIES",
    "CapabilityNegotiator",
    "ClassicPuppet",
    "IdentityDecision",
    "IdentityResolver",
    "RelayCapability",
    "RelaySpoof",
    "decoration_for",
]
