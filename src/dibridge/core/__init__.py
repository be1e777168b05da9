"""Core constants and exceptions shared by every layer."""
