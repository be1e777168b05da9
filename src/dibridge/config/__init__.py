"""Configuration: YAML + .env overlay."""

from dibridge.config.loader import load_config, load_config_with_env
from dibridge.config.schema import BridgeOptions, Config, cfg

__all__ = ["BridgeOptions", "Config", "cfg", "load_config", "load_config_with_env"]
