"""API key management endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError

from rapids.config import settings
from rapids.exceptions import DuplicateKeyError, InvalidKeyConfigError
from rapids.models.api_key import (
    ApiKeyConfig,
    ApiKeyCreated,
    ApiKeyListOptions,
    ApiKeyResponse,
    ApiKeyUpdate,
)
from rapids.models.common import ErrorResponse, error_detail
from rapids.services.api_key_service import ApiKeyService, get_api_key_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/v1/keys",
    tags=["api-keys"],
    responses={404: {"model": ErrorResponse}, 400: {"model": ErrorResponse}},
)


def _not_found() -> HTTPException:
    return HTTPException(status_code=404, detail=error_detail("NOT_FOUND", "API key not found"))


async def _json_body(request: Request) -> dict | None:
    body = await request.body()
    if not body:
        return None
    try:
        data = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail=error_detail("VALIDATION_ERROR", "Request body must be JSON"))
    if not isinstance(data, dict):
        raise HTTPException(status_code=400, detail=error_detail("VALIDATION_ERROR", "Request body must be a JSON object"))
    return data


@router.post("", status_code=201)
async def create_api_key(request: Request, service: ApiKeyService = Depends(get_api_key_service)):
    body = await _json_body(request) or {}
    try:
        config = ApiKeyConfig(**body)
        result = await service.create(config)
    except (ValidationError, InvalidKeyConfigError) as exc:
        raise HTTPException(status_code=400, detail=error_detail("VALIDATION_ERROR", str(exc)))
    except DuplicateKeyError:
        logger.exception("API key collision on create")
        raise HTTPException(status_code=500, detail=error_detail("INTERNAL_ERROR", "Failed to create API key"))

    # Simple response - just the key users need
    return ApiKeyCreated(
        key=result.key, id=result.record.id, expires_at=result.record.expires_at
    ).model_dump(mode="json")


@router.post("/validate")
async def validate_api_key(request: Request, service: ApiKeyService = Depends(get_api_key_service)):
    body = await _json_body(request)
    if not body or not body.get("key"):
        raise HTTPException(status_code=400, detail=error_detail("VALIDATION_ERROR", 'Missing "key" in request body'))

    result = await service.validate(str(body["key"]), update_last_used=False)
    return {
        "valid": result.valid,
        "reason": result.reason,
        "key": ApiKeyResponse.from_record(result.key, service.now()).model_dump(mode="json") if result.key else None,
    }


@router.get("")
async def list_api_keys(
    active: bool | None = None,
    prefix: str | None = None,
    include_expired: bool = False,
    offset: int = 0,
    limit: int = 50,
    service: ApiKeyService = Depends(get_api_key_service),
):
    try:
        options = ApiKeyListOptions(
            is_active=active,
            prefix=prefix,
            include_expired=include_expired,
            offset=offset,
            limit=min(limit, settings.list_max_limit),
        )
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=error_detail("VALIDATION_ERROR", str(exc)))

    keys = await service.list(options)
    now = service.now()
    return {
        "items": [ApiKeyResponse.from_record(k, now).model_dump(mode="json") for k in keys],
        "count": len(keys),
    }


@router.get("/stats")
async def api_key_stats(service: ApiKeyService = Depends(get_api_key_service)):
    stats = await service.get_stats()
    return stats.model_dump()


@router.get("/{key_id}")
async def get_api_key(key_id: str, service: ApiKeyService = Depends(get_api_key_service)):
    key = await service.get_by_id(key_id)
    if not key:
        raise _not_found()
    return ApiKeyResponse.from_record(key, service.now()).model_dump(mode="json")


@router.patch("/{key_id}")
async def update_api_key(key_id: str, request: Request, service: ApiKeyService = Depends(get_api_key_service)):
    if not await service.get_by_id(key_id):
        raise _not_found()

    body = await _json_body(request)
    if body is None:
        raise HTTPException(status_code=400, detail=error_detail("VALIDATION_ERROR", "Invalid request body"))
    try:
        update = ApiKeyUpdate(**body)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=error_detail("VALIDATION_ERROR", str(exc)))

    updated = False
    if "name" in update.model_fields_set:
        updated = await service.rename(key_id, update.name) or updated
    if update.scopes is not None:
        updated = await service.update_scopes(key_id, update.scopes) or updated
    if update.metadata is not None:
        updated = await service.update_metadata(key_id, update.metadata) or updated

    if not updated:
        raise HTTPException(status_code=400, detail=error_detail("VALIDATION_ERROR", "No fields to update"))

    key = await service.get_by_id(key_id)
    if not key:
        raise _not_found()
    return {"message": "API key updated", "key": ApiKeyResponse.from_record(key, service.now()).model_dump(mode="json")}


@router.post("/{key_id}/revoke")
async def revoke_api_key(key_id: str, service: ApiKeyService = Depends(get_api_key_service)):
    if not await service.revoke(key_id):
        raise _not_found()
    return {"message": "API key revoked successfully"}


@router.delete("/{key_id}")
async def delete_api_key(key_id: str, service: ApiKeyService = Depends(get_api_key_service)):
    if not await service.delete(key_id):
        raise _not_found()
    return {"message": "API key deleted successfully"}
