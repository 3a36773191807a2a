"""App registry endpoints. Private keys are encrypted at rest."""

from __future__ import annotations

import aiosqlite
from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError

from rapids.db.database import get_db
from rapids.db.queries import apps as app_queries
from rapids.models.app import AppCreate, AppResponse, AppUpdate
from rapids.models.common import error_detail
from rapids.services.key_store import from_ms
from rapids.utils.crypto import decrypt_private_key, encrypt_private_key

router = APIRouter(prefix="/v1/apps", tags=["apps"])


def _to_response(row: dict) -> dict:
    return AppResponse(
        app_id=row["app_id"],
        name=row["name"],
        public_key=row["public_key"],
        private_key=decrypt_private_key(row["private_key_encrypted"]),
        created_at=from_ms(row["created_at"]),
    ).model_dump(mode="json")


def _not_found() -> HTTPException:
    return HTTPException(status_code=404, detail=error_detail("NOT_FOUND", "App not found"))


@router.post("", status_code=201)
async def create_app(body: dict, db: aiosqlite.Connection = Depends(get_db)):
    try:
        app_in = AppCreate(**body)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=error_detail("VALIDATION_ERROR", str(exc)))

    if app_in.app_id and await app_queries.get_app(db, app_in.app_id):
        raise HTTPException(status_code=409, detail=error_detail("CONFLICT", f"App {app_in.app_id} already exists"))

    app_id = await app_queries.create_app(
        db, app_in.name, app_in.public_key,
        encrypt_private_key(app_in.private_key),
        app_id=app_in.app_id,
    )
    return _to_response(await app_queries.get_app(db, app_id))


@router.get("")
async def list_apps(db: aiosqlite.Connection = Depends(get_db)):
    apps = await app_queries.list_apps(db)
    return {"items": [_to_response(a) for a in apps]}


@router.get("/{app_id}")
async def get_app(app_id: str, db: aiosqlite.Connection = Depends(get_db)):
    app = await app_queries.get_app(db, app_id)
    if not app:
        raise _not_found()
    return _to_response(app)


@router.patch("/{app_id}")
async def update_app(app_id: str, body: dict, db: aiosqlite.Connection = Depends(get_db)):
    if not await app_queries.get_app(db, app_id):
        raise _not_found()
    try:
        update = AppUpdate(**body)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=error_detail("VALIDATION_ERROR", str(exc)))

    await app_queries.update_app(
        db, app_id,
        name=update.name,
        public_key=update.public_key,
        private_key_encrypted=encrypt_private_key(update.private_key) if update.private_key is not None else None,
    )
    return _to_response(await app_queries.get_app(db, app_id))


@router.delete("/{app_id}")
async def delete_app(app_id: str, db: aiosqlite.Connection = Depends(get_db)):
    if not await app_queries.delete_app(db, app_id):
        raise _not_found()
    return {"message": "App deleted successfully"}
