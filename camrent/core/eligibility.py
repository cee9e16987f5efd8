# camrent/core/eligibility.py
import logging

from beanie import PydanticObjectId

from camrent.models.enum import ExtensionStatus, RentalStatus, ShippingStatus
from camrent.models.extension import EligibilityResult, RentalExtension
from camrent.models.rental import Rental

logger = logging.getLogger(__name__)


async def has_pending_extension(rental_id: PydanticObjectId, session=None) -> bool:
    pending = await RentalExtension.find_one(
        {"rental_id": rental_id, "extension_status": ExtensionStatus.PENDING.value},
        session=session,
    )
    return pending is not None


async def check_eligibility(rental_id: PydanticObjectId, session=None) -> EligibilityResult:
    """A rental can be extended once it is active and delivered, with no pending request."""
    try:
        rental = await Rental.get(rental_id, session=session)
        if not rental:
            return EligibilityResult(is_eligible=False, error="Rental not found.")

        if rental.rental_status != RentalStatus.ACTIVE:
            return EligibilityResult(is_eligible=False, error="Rental must be in active status to extend.")
        if rental.shipping_status != ShippingStatus.DELIVERED:
            return EligibilityResult(is_eligible=False, error="Camera must be delivered to extend rental.")

        if await has_pending_extension(rental.id, session=session):
            return EligibilityResult(is_eligible=False, error="Rental already has a pending extension request.")

        return EligibilityResult(is_eligible=True)

    except Exception as e:
        logger.error(f"Error during extension eligibility check for rental {rental_id}: {e}", exc_info=True)
        return EligibilityResult(is_eligible=False, error="Extension eligibility check failed.")
