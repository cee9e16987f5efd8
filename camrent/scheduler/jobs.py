# camrent/scheduler/jobs.py
import logging

from camrent.core.utils import today, utcnow
from camrent.models.enum import RentalStatus
from camrent.models.rental import Rental

logger = logging.getLogger("scheduler_jobs")

EXPIRY_REASON = "Request expired: start date passed without confirmation."


async def expire_stale_pending_rentals() -> int:
    """Cancel pending rentals whose start date has already passed. Returns how many were cancelled."""
    now = utcnow()
    logger.info(f"Running expire_stale_pending_rentals job at {now}")

    stale = await Rental.find({
        "rental_status": RentalStatus.PENDING.value,
        "start_date": {"$lt": today()},
    }).to_list()
    if not stale:
        logger.info("No stale pending rentals found.")
        return 0

    try:
        result = await Rental.get_motor_collection().update_many(
            # Status is matched again so a confirmation that raced the job wins
            {"_id": {"$in": [r.id for r in stale]}, "rental_status": RentalStatus.PENDING.value},
            {"$set": {
                "rental_status": RentalStatus.CANCELLED.value,
                "cancellation_reason": EXPIRY_REASON,
                "cancelled_at": now,
                "updated_at": now,
            }},
        )
    except Exception:
        logger.error("Failed to expire stale pending rentals.", exc_info=True)
        raise

    logger.info(f"Job finished. Found: {len(stale)}, Cancelled: {result.modified_count}")
    return result.modified_count
