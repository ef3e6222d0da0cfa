"""FastAPI dependency injection utilities."""

from __future__ import annotations

import json
from typing import Annotated, Any

from fastapi import Depends, Request

from ..config import Settings
from ..errors import PayloadTooLargeError, ServiceError, ValidationError
from ..gateway import ValidatedGenerationGateway
from ..store import KeyStore


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> KeyStore:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise ServiceError("Key store is not initialized")
    return store


def get_gateway(request: Request) -> ValidatedGenerationGateway:
    gateway = getattr(request.app.state, "gateway", None)
    if gateway is None:
        raise ServiceError("Generation gateway is not initialized")
    return gateway


SettingsDep = Annotated[Settings, Depends(get_app_settings)]
StoreDep = Annotated[KeyStore, Depends(get_store)]
GatewayDep = Annotated[ValidatedGenerationGateway, Depends(get_gateway)]


async def read_json_body(request: Request, max_bytes: int | None = None) -> Any:
    """
    Read and parse a JSON request body.

    The size cap is enforced on the raw bytes before parsing, first from
    ``Content-Length`` when present and then on the running total while the
    body streams in, so a chunked upload stops at the first chunk past the cap.

    Raises:
        PayloadTooLargeError: Body exceeds ``max_bytes``.
        ValidationError: Body is missing or is not valid JSON.
    """
    if max_bytes is None:
        raw = await request.body()
    else:
        declared = request.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > max_bytes:
            raise PayloadTooLargeError(max_bytes=max_bytes, actual_bytes=int(declared))

        chunks: list[bytes] = []
        received = 0
        async for chunk in request.stream():
            received += len(chunk)
            if received > max_bytes:
                raise PayloadTooLargeError(max_bytes=max_bytes, actual_bytes=received)
            chunks.append(chunk)
        raw = b"".join(chunks)

    if not raw.strip():
        raise ValidationError("Body required")
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError("Invalid JSON body") from e


__all__ = [
    "SettingsDep",
    "StoreDep",
    "GatewayDep",
    "get_app_settings",
    "get_store",
    "get_gateway",
    "read_json_body",
]
