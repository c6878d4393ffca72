# services/api/lens_api/schemas.py

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Category = Literal["street", "nature"]
DisplaySection = Literal["home", "gallery", "all"]

class TokenResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token: str
    expires_in: int = Field(alias="expiresIn")

class ImageMeta(BaseModel):
    """Public metadata. The storage URI stays server-side."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    filename: str
    original_name: str
    title: str
    category: Category
    display_section: DisplaySection = "all"
    location: Optional[str] = None
    year: Optional[str] = None
    content_type: str
    size: int
    views: int = 0
    uploaded_at: datetime

class ErrorResponse(BaseModel):
    error: str

class HealthResponse(BaseModel):
    status: str = "OK"
    message: str = "Server is running"
