from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class AppCreate(BaseModel):
    app_id: str | None = None
    name: str
    public_key: str
    private_key: str


class AppUpdate(BaseModel):
    name: str | None = None
    public_key: str | None = None
    private_key: str | None = None


class AppResponse(BaseModel):
    app_id: str
    name: str
    public_key: str
    private_key: str
    created_at: datetime
