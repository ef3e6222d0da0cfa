"""
Base types for configuration.
"""

from __future__ import annotations

from typing import Literal

StoreBackendType = Literal["memory", "fs", "postgres", "redis"]
TokenParameter = Literal["max_tokens", "max_completion_tokens"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LogFormat = Literal["text", "json"]

STORE_BACKENDS = ("memory", "fs", "postgres", "redis")


__all__ = ["StoreBackendType", "TokenParameter", "LogLevel", "LogFormat", "STORE_BACKENDS"]
