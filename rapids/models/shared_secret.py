from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class SharedSecretResponse(BaseModel):
    private_key: str
    public_key: str
    created_at: datetime
