import uuid
from pydantic import BaseModel, ConfigDict, HttpUrl, Field, field_validator
from typing import Optional
from datetime import datetime, timezone

class ShortenRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    long_url: HttpUrl
    expires_at: Optional[datetime] = Field(None, alias="expiresAt")

    @field_validator("expires_at")
    @classmethod
    def assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

class ShortenResponse(BaseModel):
    status: str = "success"
    message: str
    short_url: str

class ErrorResponse(BaseModel):
    status: str = "fail"
    error: str

class ResolvedURL(BaseModel):
    """Projection of a short URL row, also the JSON payload stored in the cache."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    long_url: str
    expires_at: Optional[datetime] = None
