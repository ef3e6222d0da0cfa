"""Generation routes."""

from __future__ import annotations

from typing import Any, TypeVar

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..errors import InvalidRequestError
from ..generation import GenerationRequest
from ..validation import validate_key
from .dependencies import GatewayDep, get_store, read_json_body
from .schemas import GenerateBody, GenerateResponse, ValidatedGenerateBody, ValidatedGenerateResponse

router = APIRouter()

BodyT = TypeVar("BodyT", bound=BaseModel)

# Generation bodies are small; this only guards against abuse
MAX_BODY_BYTES = 1024 * 1024


def _parse(model: type[BodyT], raw: Any) -> BodyT:
    if not isinstance(raw, dict):
        raise InvalidRequestError("Request body must be a JSON object")
    try:
        return model.model_validate(raw)
    except PydanticValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise InvalidRequestError(f"{location}: {first.get('msg')}" if location else first.get("msg")) from e


def _to_request(body: GenerateBody) -> GenerationRequest:
    fields = body.model_dump(by_alias=True, exclude_none=True, include=set(GenerateBody.model_fields))
    return GenerationRequest.from_dict(fields)


@router.post("", response_model=GenerateResponse)
async def generate(request: Request, gateway: GatewayDep) -> JSONResponse:
    """Single generation without schema validation."""
    body = _parse(GenerateBody, await read_json_body(request, MAX_BODY_BYTES))
    response = await gateway.generate_text(_to_request(body))
    return JSONResponse(content=response.to_dict())


@router.post("/validated", response_model=ValidatedGenerateResponse)
async def generate_validated(request: Request, gateway: GatewayDep) -> JSONResponse:
    """
    Schema-validated generation with one stricter retry and a fallback.

    When ``storeKey`` is given the validated data (or the fallback) is
    written to the key store with an unconditional put.
    """
    body = _parse(ValidatedGenerateBody, await read_json_body(request, MAX_BODY_BYTES))
    if body.store_key is not None:
        validate_key(body.store_key)

    result = await gateway.generate(_to_request(body), body.json_schema, body.fallback)

    if body.store_key is not None:
        await get_store(request).put(body.store_key, result.data)

    return JSONResponse(content=result.to_dict())


__all__ = ["router"]
