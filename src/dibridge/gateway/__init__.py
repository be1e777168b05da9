"""Gateway: channel mapping store and the message router."""

from dibridge.gateway.mappings import ChannelMapping, MappingDiff, MappingStore, parse_mapping_entries
from dibridge.gateway.router import MessageRouter

__all__ = ["ChannelMapping", "MappingDiff", "MappingStore", "MessageRouter", "parse_mapping_entries"]
