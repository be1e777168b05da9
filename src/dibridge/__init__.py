"""dibridge: Discord <-> IRC bridge."""

__version__ = "0.3.0"
