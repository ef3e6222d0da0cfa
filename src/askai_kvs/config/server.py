"""
HTTP server configuration.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ServerConfig:
    """Configuration for the FastAPI application."""

    title: str = "askai-kvs"
    allowed_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000"])
    kvs_prefix: str = "/kvs"
    askai_prefix: str = "/askai"
    debug: bool = False

    def __post_init__(self):
        """Validate configuration after initialization."""
        if isinstance(self.allowed_origins, str):
            self.allowed_origins = [o.strip() for o in self.allowed_origins.split(",") if o.strip()]
        for name in ("kvs_prefix", "askai_prefix"):
            value = getattr(self, name)
            if not value.startswith("/") or value.endswith("/"):
                raise ValueError(f"{name} must start with '/' and not end with '/'")
        if self.kvs_prefix == self.askai_prefix:
            raise ValueError("kvs_prefix and askai_prefix must differ")


__all__ = ["ServerConfig"]
