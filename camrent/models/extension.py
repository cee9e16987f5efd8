# camrent/models/extension.py
from typing import List, Optional
from datetime import date, datetime

from beanie import Document, PydanticObjectId
from pydantic import BaseModel, Field
from pymongo import IndexModel, ASCENDING, DESCENDING

from camrent.core.utils import utcnow
from camrent.models.enum import ExtensionStatus, RequestedByRole
from camrent.models.payment import Payment
from camrent.models.rental import RentalSummary
from camrent.models.user import CustomerSummary


class RentalExtension(Document):
    rental_id: PydanticObjectId
    requested_by: PydanticObjectId
    requested_by_role: RequestedByRole = RequestedByRole.USER
    original_end_date: datetime
    requested_end_date: datetime
    extension_days: int = Field(..., gt=0)
    additional_price: float = Field(..., ge=0)
    extension_status: ExtensionStatus = ExtensionStatus.PENDING
    admin_notes: Optional[str] = None

    requested_at: datetime = Field(default_factory=utcnow)
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    decided_by: Optional[PydanticObjectId] = None
    updated_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "rental_extensions"
        indexes = [
            IndexModel([("rental_id", ASCENDING), ("extension_status", ASCENDING)], name="extension_rental_status_index"),
            IndexModel([("requested_by", ASCENDING)], name="extension_requested_by_index"),
            IndexModel([("requested_at", DESCENDING)], name="extension_requested_at_index"),
        ]

    # --- Pydantic Schemas ---
    class Request(BaseModel):
        """User asks to push their rental's end date."""
        rental_id: str = Field(...)
        new_end_date: date

    class Reject(BaseModel):
        notes: Optional[str] = None

    class Response(BaseModel):
        id: str
        rental_id: str
        requested_by: str
        requested_by_role: RequestedByRole
        original_end_date: datetime
        requested_end_date: datetime
        extension_days: int
        additional_price: float
        extension_status: ExtensionStatus
        admin_notes: Optional[str] = None
        requested_at: datetime
        approved_at: Optional[datetime] = None
        rejected_at: Optional[datetime] = None
        decided_by: Optional[str] = None

        class Config:
            from_attributes = True
            use_enum_values = True


class ExtensionHistoryEntry(RentalExtension.Response):
    """A user's extension with its rental and payments merged in."""
    rental: Optional[RentalSummary] = None
    payments: List[Payment.Response] = Field(default_factory=list)


class AdminExtensionEntry(RentalExtension.Response):
    rental: Optional[RentalSummary] = None
    customer: Optional[CustomerSummary] = None


class ExtensionResult(BaseModel):
    """Outcome of a successful extension request."""
    extension: RentalExtension.Response
    payment: Optional[Payment.Response] = None


class AvailabilityResult(BaseModel):
    is_available: bool
    error: Optional[str] = None


class EligibilityResult(BaseModel):
    is_eligible: bool
    error: Optional[str] = None
