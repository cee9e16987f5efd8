# camrent/models/enum.py
from enum import Enum


class RentalStatus(str, Enum):
    PENDING = "pending"          # submitted by the user, waiting for admin
    CONFIRMED = "confirmed"
    ACTIVE = "active"            # set on delivery
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


class ShippingStatus(str, Enum):
    NONE = "none"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    RETURN_SCHEDULED = "return_scheduled"
    RETURN_COMPLETED = "return_completed"


class ExtensionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class RequestedByRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class PaymentType(str, Enum):
    RENTAL = "rental"
    EXTENSION = "extension"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"      # receipt uploaded
    VERIFIED = "verified"
    REJECTED = "rejected"


class ResolutionAction(str, Enum):
    TRANSFER_CURRENT = "transfer_current"
    REJECT_CURRENT = "reject_current"
    REJECT_CONFLICTS = "reject_conflicts"
    CONFIRM_ANYWAY = "confirm_anyway"


# Statuses that hold a unit for their date range
BLOCKING_RENTAL_STATUSES = [RentalStatus.CONFIRMED.value, RentalStatus.ACTIVE.value]
