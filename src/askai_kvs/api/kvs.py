"""Key store routes."""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ..validation import validate_key
from .dependencies import StoreDep, read_json_body
from .schemas import SuccessResponse

router = APIRouter()


@router.get("/{key:path}")
async def get_value(key: str, store: StoreDep) -> JSONResponse:
    """Return the stored value as the response body."""
    value = await store.get(key)
    return JSONResponse(content=value)


@router.put("/{key:path}", response_model=SuccessResponse)
async def put_value(key: str, request: Request, store: StoreDep) -> SuccessResponse:
    validate_key(key)
    value = await read_json_body(request, store.max_payload_bytes)
    await store.put(key, value)
    return SuccessResponse()


@router.post("/{key:path}", response_model=SuccessResponse)
async def create_value(key: str, request: Request, store: StoreDep) -> SuccessResponse:
    """Create ``key``; 409 if it already exists."""
    validate_key(key)
    value = await read_json_body(request, store.max_payload_bytes)
    await store.create(key, value)
    return SuccessResponse()


@router.patch("/{key:path}", response_model=SuccessResponse)
async def patch_value(key: str, request: Request, store: StoreDep) -> SuccessResponse:
    """Merge the body into the stored value; 404 if the key does not exist."""
    validate_key(key)
    partial = await read_json_body(request, store.max_payload_bytes)
    await store.patch(key, partial)
    return SuccessResponse()


@router.delete("/{key:path}", response_model=SuccessResponse)
async def delete_value(key: str, store: StoreDep) -> SuccessResponse:
    await store.delete(key)
    return SuccessResponse()


__all__ = ["router"]
