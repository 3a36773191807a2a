from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class RuesResponse(BaseModel):
    app_id: str
    public_key: str
    created_at: datetime
