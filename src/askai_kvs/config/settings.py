"""
Settings master configuration and global helpers.
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
from dotenv import find_dotenv, load_dotenv

from ..config_schema import CONFIG_SCHEMA
from .gateway import GatewayConfig, LinkConfig
from .logging import LoggingConfig
from .provider import OpenAIConfig
from .server import ServerConfig
from .store import FSStoreConfig, PostgresStoreConfig, RedisStoreConfig, StoreConfig

_STORE_CONFIG_TYPES: dict[str, type[StoreConfig]] = {
    "memory": StoreConfig,
    "fs": FSStoreConfig,
    "postgres": PostgresStoreConfig,
    "redis": RedisStoreConfig,
}


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class Settings:
    """
    Master configuration for the key store, generation gateway and links.

    This aggregates all configuration sections into a single object
    that can be loaded from environment variables, files, or constructed
    programmatically.
    """

    # Provider configuration
    provider: OpenAIConfig = field(default_factory=OpenAIConfig)

    # Per-model capability overrides, merged over the built-in table
    models: dict[str, dict[str, Any]] = field(default_factory=dict)

    # Key store configuration
    store: StoreConfig = field(default_factory=StoreConfig)

    # Gateway configuration
    gateway: GatewayConfig = field(default_factory=GatewayConfig)

    # Capability links
    links: LinkConfig = field(default_factory=LinkConfig)

    # HTTP surface
    server: ServerConfig = field(default_factory=ServerConfig)

    # Logging configuration
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls, prefix: str = "ASKAI_") -> Settings:
        """
        Load settings from environment variables.

        Environment variables are prefixed (default: ASKAI_) and use
        underscore-separated paths for nested settings.

        Example:
            ASKAI_OPENAI_API_KEY=sk-...
            ASKAI_STORE_BACKEND=postgres
            ASKAI_STORE_PG_DSN=postgresql://...
            ASKAI_ALLOWED_ORIGINS=https://app.example.com,https://admin.example.com
        """
        settings = cls()

        # Provider settings
        if key := os.getenv(f"{prefix}OPENAI_API_KEY"):
            settings.provider.api_key = key
        if url := os.getenv(f"{prefix}OPENAI_BASE_URL"):
            settings.provider.base_url = url
        if model := os.getenv(f"{prefix}OPENAI_MODEL"):
            settings.provider.default_model = model
        if timeout := os.getenv(f"{prefix}OPENAI_TIMEOUT"):
            settings.provider.timeout = float(timeout)

        # Store settings
        if backend := os.getenv(f"{prefix}STORE_BACKEND"):
            backend = backend.lower()
            if backend not in _STORE_CONFIG_TYPES:
                raise ValueError(f"Invalid store backend: {backend}")
            kwargs: dict[str, Any] = {}
            if backend == "fs" and (data_dir := os.getenv(f"{prefix}STORE_DATA_DIR")):
                kwargs["data_dir"] = Path(data_dir)
            if backend == "postgres" and (dsn := os.getenv(f"{prefix}STORE_PG_DSN")):
                kwargs["pg_dsn"] = dsn
            if backend == "redis" and (redis_url := os.getenv(f"{prefix}STORE_REDIS_URL")):
                kwargs["redis_url"] = redis_url
            settings.store = _STORE_CONFIG_TYPES[backend](**kwargs)
        if max_bytes := os.getenv(f"{prefix}STORE_MAX_PAYLOAD_BYTES"):
            settings.store.max_payload_bytes = int(max_bytes)

        # Gateway settings
        if retry_temp := os.getenv(f"{prefix}GATEWAY_RETRY_TEMPERATURE"):
            settings.gateway.retry_temperature = float(retry_temp)

        # Link settings
        if secret := os.getenv(f"{prefix}LINK_SECRET"):
            settings.links.secret = secret
        if ttl := os.getenv(f"{prefix}LINK_TTL_SECONDS"):
            settings.links.default_ttl_seconds = int(ttl)
        if base_url := os.getenv(f"{prefix}LINK_BASE_URL"):
            settings.links.base_url = base_url

        # Server settings
        if origins := os.getenv(f"{prefix}ALLOWED_ORIGINS"):
            settings.server.allowed_origins = _csv(origins)
        if debug := os.getenv(f"{prefix}DEBUG"):
            settings.server.debug = _env_bool(debug)

        # Logging settings
        if level := os.getenv(f"{prefix}LOG_LEVEL"):
            settings.logging.level = level.upper()  # type: ignore
        if log_format := os.getenv(f"{prefix}LOG_FORMAT"):
            settings.logging.format = log_format.lower()  # type: ignore

        return settings

    @classmethod
    def from_file(cls, path: str | Path) -> Settings:
        """
        Load settings from a YAML or TOML file.

        Args:
            path: Path to configuration file (.yaml, .yml, or .toml)

        Returns:
            Settings object with values from file
        """
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        suffix = path.suffix.lower()

        if suffix in (".yaml", ".yml"):
            import yaml

            with open(path) as f:
                data = yaml.safe_load(f) or {}
        elif suffix == ".toml":
            import tomllib

            with open(path, "rb") as f:
                data = tomllib.load(f)
        else:
            raise ValueError(f"Unsupported config file format: {suffix}")

        return cls._from_dict(data)

    @classmethod
    def default(cls) -> Settings:
        """Create default configuration."""
        return cls()

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> Settings:
        """
        Create Settings from a dictionary.

        The dictionary is validated against the configuration schema
        before the Settings object is created.
        """
        try:
            jsonschema.validate(instance=data, schema=CONFIG_SCHEMA)
        except jsonschema.ValidationError as e:
            raise ValueError(f"Configuration validation failed: {e.message}") from e

        settings = cls()

        if "provider" in data:
            settings.provider = OpenAIConfig(**data["provider"])

        if "models" in data:
            settings.models = {name: dict(entry) for name, entry in data["models"].items()}

        if "store" in data:
            store_data = dict(data["store"])
            store_cls = _STORE_CONFIG_TYPES[store_data.get("backend", "memory")]
            names = {f.name for f in dataclasses.fields(store_cls)}
            settings.store = store_cls(**{k: v for k, v in store_data.items() if k in names})

        if "gateway" in data:
            settings.gateway = GatewayConfig(**data["gateway"])

        if "links" in data:
            settings.links = LinkConfig(**data["links"])

        if "server" in data:
            settings.server = ServerConfig(**data["server"])

        if "logging" in data:
            settings.logging = LoggingConfig(
                **{k: v for k, v in data["logging"].items() if hasattr(LoggingConfig, k)}
            )

        return settings

    def to_dict(self) -> dict[str, Any]:
        """Convert settings to dictionary."""
        def convert(obj):
            if dataclasses.is_dataclass(obj):
                return {k: convert(v) for k, v in dataclasses.asdict(obj).items()}
            elif isinstance(obj, dict):
                return {k: convert(v) for k, v in obj.items()}
            elif isinstance(obj, Path):
                return str(obj)
            return obj

        return convert(self)


# =============================================================================
# Global Settings & Helpers
# =============================================================================

_global_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance, creating from the environment if needed."""
    global _global_settings
    if _global_settings is None:
        _global_settings = Settings.from_env()
    return _global_settings


def configure(settings: Settings | None = None, **kwargs) -> Settings:
    """
    Configure global settings.

    Args:
        settings: Settings object to use globally
        **kwargs: Override specific settings sections

    Returns:
        The configured Settings object
    """
    global _global_settings

    if settings is not None:
        _global_settings = settings
    elif _global_settings is None:
        _global_settings = Settings.from_env()

    for key, value in kwargs.items():
        if hasattr(_global_settings, key):
            setattr(_global_settings, key, value)

    return _global_settings


def reset_settings() -> None:
    global _global_settings
    _global_settings = None


def load_env(path: str | None = None, *, override: bool = False) -> bool:
    """
    Load environment variables from a .env file.

    Args:
        path: Optional path to a .env file. If not provided, uses find_dotenv().
        override: Whether to override existing environment variables.

    Returns:
        True if a .env file was found and loaded, False otherwise.
    """
    env_path = path or find_dotenv(usecwd=True)
    if not env_path:
        return False
    return load_dotenv(env_path, override=override)


__all__ = ["Settings", "get_settings", "configure", "reset_settings", "load_env"]
