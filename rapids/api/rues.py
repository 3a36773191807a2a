"""Rues endpoints: app id to public key mapping, upsert by app id."""

from __future__ import annotations

import aiosqlite
from fastapi import APIRouter, Depends, HTTPException

from rapids.db.database import get_db
from rapids.db.queries import rues as rues_queries
from rapids.models.common import error_detail
from rapids.models.rues import RuesResponse
from rapids.services.key_store import from_ms

router = APIRouter(prefix="/v1/rues", tags=["rues"])


def _to_response(row: dict) -> dict:
    return RuesResponse(
        app_id=row["app_id"],
        public_key=row["public_key"],
        created_at=from_ms(row["created_at"]),
    ).model_dump(mode="json")


@router.post("", status_code=201)
async def create_rues(body: dict, db: aiosqlite.Connection = Depends(get_db)):
    if not body.get("app_id"):
        raise HTTPException(status_code=400, detail=error_detail("VALIDATION_ERROR", 'Missing "app_id" in request body'))
    if not body.get("public_key"):
        raise HTTPException(status_code=400, detail=error_detail("VALIDATION_ERROR", 'Missing "public_key" in request body'))

    row = await rues_queries.upsert_rues(db, str(body["app_id"]), str(body["public_key"]))
    return _to_response(row)


@router.get("")
async def list_rues(db: aiosqlite.Connection = Depends(get_db)):
    rows = await rues_queries.list_rues(db)
    return {"items": [_to_response(r) for r in rows]}


@router.get("/{app_id}")
async def get_rues(app_id: str, db: aiosqlite.Connection = Depends(get_db)):
    row = await rues_queries.get_rues(db, app_id)
    if not row:
        raise HTTPException(status_code=404, detail=error_detail("NOT_FOUND", "Rues not found"))
    return _to_response(row)


@router.delete("/{app_id}")
async def delete_rues(app_id: str, db: aiosqlite.Connection = Depends(get_db)):
    if not await rues_queries.delete_rues(db, app_id):
        raise HTTPException(status_code=404, detail=error_detail("NOT_FOUND", "Rues not found"))
    return {"message": "Rues deleted successfully"}
