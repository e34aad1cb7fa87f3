"""Configuration module for transformator_client."""

from transformator_client.config.loader import get_config_path, load_config, save_config
from transformator_client.config.schema import ClientOptions, Config, StandaloneOptions

__all__ = ["ClientOptions", "Config", "StandaloneOptions", "get_config_path", "load_config", "save_config"]
