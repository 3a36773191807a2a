"""Shared secret endpoints (upsert by private key)."""

from __future__ import annotations

import aiosqlite
from fastapi import APIRouter, Depends, HTTPException

from rapids.db.database import get_db
from rapids.db.queries import shared_secrets as secret_queries
from rapids.models.common import error_detail
from rapids.models.shared_secret import SharedSecretResponse
from rapids.services.key_store import from_ms

router = APIRouter(prefix="/v1/shared-secret", tags=["shared-secrets"])


def _to_response(row: dict) -> dict:
    return SharedSecretResponse(
        private_key=row["private_key"],
        public_key=row["public_key"],
        created_at=from_ms(row["created_at"]),
    ).model_dump(mode="json")


@router.post("", status_code=201)
async def create_shared_secret(body: dict, db: aiosqlite.Connection = Depends(get_db)):
    if not body.get("private_key"):
        raise HTTPException(status_code=400, detail=error_detail("VALIDATION_ERROR", 'Missing "private_key" in request body'))
    if not body.get("public_key"):
        raise HTTPException(status_code=400, detail=error_detail("VALIDATION_ERROR", 'Missing "public_key" in request body'))

    row = await secret_queries.upsert_shared_secret(db, str(body["private_key"]), str(body["public_key"]))
    return _to_response(row)


@router.get("")
async def list_shared_secrets(db: aiosqlite.Connection = Depends(get_db)):
    rows = await secret_queries.list_shared_secrets(db)
    return {"items": [_to_response(r) for r in rows]}


@router.get("/{private_key}")
async def get_shared_secret(private_key: str, db: aiosqlite.Connection = Depends(get_db)):
    row = await secret_queries.get_shared_secret(db, private_key)
    if not row:
        raise HTTPException(status_code=404, detail=error_detail("NOT_FOUND", "Shared secret not found"))
    return _to_response(row)


@router.delete("/{private_key}")
async def delete_shared_secret(private_key: str, db: aiosqlite.Connection = Depends(get_db)):
    if not await secret_queries.delete_shared_secret(db, private_key):
        raise HTTPException(status_code=404, detail=error_detail("NOT_FOUND", "Shared secret not found"))
    return {"message": "Shared secret deleted successfully"}
