from datetime import datetime

from pydantic import BaseModel


class EntryOut(BaseModel):
    id: int
    owner_id: int
    wine_name: str | None = None
    producer: str | None = None
    vintage: str | None = None
    privacy_tier: str | None = None
    consumed_at: datetime | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class EntryListResponse(BaseModel):
    entries: list[EntryOut]
