"""
Configuration system for askai-kvs.

This package provides typed configuration classes with:
- Dataclass-based settings with validation
- Environment variable loading
- YAML/TOML file loading
- Sensible defaults with override capability
"""

from .base import LogFormat, LogLevel, StoreBackendType, TokenParameter
from .gateway import GatewayConfig, LinkConfig
from .logging import LoggingConfig
from .provider import OpenAIConfig, ProviderConfig
from .server import ServerConfig
from .settings import Settings, configure, get_settings, load_env, reset_settings
from .store import FSStoreConfig, PostgresStoreConfig, RedisStoreConfig, StoreConfig

__all__ = [
    # Types
    "StoreBackendType",
    "TokenParameter",
    "LogLevel",
    "LogFormat",
    # Provider configs
    "ProviderConfig",
    "OpenAIConfig",
    # Store configs
    "StoreConfig",
    "FSStoreConfig",
    "PostgresStoreConfig",
    "RedisStoreConfig",
    # Other configs
    "GatewayConfig",
    "LinkConfig",
    "ServerConfig",
    "LoggingConfig",
    # Master config
    "Settings",
    # Global functions
    "get_settings",
    "configure",
    "reset_settings",
    "load_env",
]
