# camrent/models/rental.py
from typing import Optional
from datetime import date, datetime

from beanie import Document, PydanticObjectId
from pydantic import BaseModel, Field, model_validator
from pymongo import IndexModel, ASCENDING, DESCENDING

from camrent.core.utils import utcnow
from camrent.models.enum import RentalStatus, ShippingStatus


class Rental(Document):
    camera_id: PydanticObjectId
    # None for walk-in customers booked by an admin
    user_id: Optional[PydanticObjectId] = None
    start_date: datetime
    end_date: datetime
    rental_status: RentalStatus = RentalStatus.PENDING
    shipping_status: ShippingStatus = ShippingStatus.NONE
    price_per_day: float = Field(..., ge=0)
    total_price: float = Field(default=0, ge=0)

    customer_name: Optional[str] = None
    customer_contact: Optional[str] = None
    customer_email: Optional[str] = None
    admin_created: bool = False
    rejection_reason: Optional[str] = None
    cancellation_reason: Optional[str] = None

    confirmed_at: Optional[datetime] = None
    confirmed_by: Optional[PydanticObjectId] = None
    rejected_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    return_initiated_at: Optional[datetime] = None
    returned_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "rentals"
        indexes = [
            IndexModel([("camera_id", ASCENDING), ("start_date", ASCENDING)], name="rental_camera_dates_index"),
            IndexModel([("user_id", ASCENDING)], name="rental_user_index"),
            IndexModel([("rental_status", ASCENDING)], name="rental_status_index"),
            IndexModel([("created_at", DESCENDING)], name="rental_created_at_index"),
        ]

    # --- Pydantic Schemas ---
    class Create(BaseModel):
        camera_id: str = Field(...)
        start_date: date
        end_date: date

        @model_validator(mode="after")
        def check_range(self):
            if self.end_date < self.start_date:
                raise ValueError("End date cannot be before start date.")
            return self

    class AdminCreate(Create):
        customer_name: str = Field(..., min_length=1)
        customer_contact: str = Field(..., min_length=1)
        customer_email: Optional[str] = None

    class Reject(BaseModel):
        reason: str = Field(..., min_length=1)

    class Transfer(BaseModel):
        unit_id: str = Field(...)

    class Response(BaseModel):
        id: str
        camera_id: str
        user_id: Optional[str] = None
        start_date: datetime
        end_date: datetime
        rental_status: RentalStatus
        shipping_status: ShippingStatus
        price_per_day: float
        total_price: float
        customer_name: Optional[str] = None
        customer_contact: Optional[str] = None
        customer_email: Optional[str] = None
        admin_created: bool
        rejection_reason: Optional[str] = None
        cancellation_reason: Optional[str] = None
        confirmed_at: Optional[datetime] = None
        rejected_at: Optional[datetime] = None
        cancelled_at: Optional[datetime] = None
        shipped_at: Optional[datetime] = None
        delivered_at: Optional[datetime] = None
        return_initiated_at: Optional[datetime] = None
        returned_at: Optional[datetime] = None
        created_at: datetime
        updated_at: datetime

        class Config:
            from_attributes = True
            use_enum_values = True


class RentalSummary(BaseModel):
    """Rental reference embedded in extension listings."""
    id: str
    camera_id: str
    camera_name: Optional[str] = None
    serial_number: Optional[str] = None
    start_date: datetime
    end_date: datetime
    rental_status: RentalStatus

    class Config:
        use_enum_values = True
