# camrent/models/payment.py
from typing import Optional
from datetime import datetime

from beanie import Document, PydanticObjectId
from pydantic import BaseModel, Field
from pymongo import IndexModel, ASCENDING

from camrent.core.utils import utcnow
from camrent.models.enum import PaymentStatus, PaymentType


class Payment(Document):
    rental_id: PydanticObjectId
    user_id: Optional[PydanticObjectId] = None
    extension_id: Optional[PydanticObjectId] = None
    payment_type: PaymentType = PaymentType.RENTAL
    amount: float = Field(..., ge=0)
    payment_status: PaymentStatus = PaymentStatus.PENDING
    receipt_path: Optional[str] = None
    rejection_reason: Optional[str] = None

    submitted_at: Optional[datetime] = None
    verified_at: Optional[datetime] = None
    verified_by: Optional[PydanticObjectId] = None
    rejected_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "payments"
        # None fields are not stored, so the sparse extension_id index skips rental payments
        keep_nulls = False
        indexes = [
            IndexModel([("rental_id", ASCENDING)], name="payment_rental_index"),
            # At most one extension payment per extension
            IndexModel(
                [("extension_id", ASCENDING)], name="payment_extension_unique_index", unique=True, sparse=True
            ),
            IndexModel([("payment_status", ASCENDING)], name="payment_status_index"),
        ]

    # --- Pydantic Schemas ---
    class Reject(BaseModel):
        reason: str = Field(..., min_length=1)

    class Response(BaseModel):
        id: str
        rental_id: str
        user_id: Optional[str] = None
        extension_id: Optional[str] = None
        payment_type: PaymentType
        amount: float
        payment_status: PaymentStatus
        receipt_path: Optional[str] = None
        rejection_reason: Optional[str] = None
        submitted_at: Optional[datetime] = None
        verified_at: Optional[datetime] = None
        rejected_at: Optional[datetime] = None
        created_at: datetime

        class Config:
            from_attributes = True
            use_enum_values = True
