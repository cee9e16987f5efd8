# camrent/models/camera.py
from typing import Optional
from datetime import datetime

from beanie import Document
from pydantic import BaseModel, Field
from pymongo import IndexModel, ASCENDING

from camrent.core.utils import utcnow


class Camera(Document):
    """One physical, serial-numbered unit. Units of the same model share a name."""
    name: str = Field(..., max_length=200)
    serial_number: str = Field(..., max_length=100)
    description: Optional[str] = None
    price_per_day: float = Field(..., gt=0)
    image_url: Optional[str] = None
    is_active: bool = Field(default=True)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "cameras"
        indexes = [
            IndexModel([("name", ASCENDING)], name="camera_name_index"),
            IndexModel([("serial_number", ASCENDING)], name="camera_serial_unique_index", unique=True),
            IndexModel([("is_active", ASCENDING)], name="camera_is_active_index"),
        ]

    # --- Pydantic Schemas for API ---
    class Create(BaseModel):
        name: str = Field(..., min_length=1, max_length=200)
        serial_number: str = Field(..., min_length=1, max_length=100)
        description: Optional[str] = None
        price_per_day: float = Field(..., gt=0)
        image_url: Optional[str] = None

    class Update(BaseModel):
        name: Optional[str] = Field(None, min_length=1, max_length=200)
        description: Optional[str] = None
        price_per_day: Optional[float] = Field(None, gt=0)
        image_url: Optional[str] = None
        is_active: Optional[bool] = None

    class Response(BaseModel):
        id: str
        name: str
        serial_number: str
        description: Optional[str] = None
        price_per_day: float
        image_url: Optional[str] = None
        is_active: bool
        created_at: datetime
        updated_at: datetime

        class Config:
            from_attributes = True
