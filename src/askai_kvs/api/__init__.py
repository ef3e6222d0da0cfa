"""
HTTP surface: key store routes under ``/kvs``, generation routes under
``/askai`` and ``/healthz``.
"""

from .app import create_app

__all__ = ["create_app"]
