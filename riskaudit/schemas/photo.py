from __future__ import annotations
from datetime import datetime
from pydantic import BaseModel


class PhotoCreate(BaseModel):
    image_base64: str
    captured_at: datetime | None = None
    description: str | None = None


class PhotoRead(BaseModel):
    id: str
    image_ref: str
    thumbnail_ref: str | None = None
    captured_at: datetime
    description: str | None = None
    is_analyzed: bool

    model_config = {"from_attributes": True}
