# camrent/core/availability.py
import asyncio
import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from beanie import PydanticObjectId

from camrent.core.utils import ONE_DAY, DateLike, to_midnight
from camrent.models.enum import BLOCKING_RENTAL_STATUSES
from camrent.models.extension import AvailabilityResult
from camrent.models.rental import Rental

logger = logging.getLogger(__name__)

# --- Per-camera advisory locks ---
# Held around check-then-write sequences so two requests in this process
# cannot both pass the availability check for the same unit. The locks are
# per process, not shared between workers, and one lock per camera id is kept
# for the life of the process.
_camera_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)


def camera_lock(camera_id) -> asyncio.Lock:
    return _camera_locks[str(camera_id)]


async def find_overlapping_rentals(
    camera_id: PydanticObjectId,
    start_date: datetime,
    end_date: datetime,
    statuses: Iterable[str] = BLOCKING_RENTAL_STATUSES,
    exclude_rental_id: Optional[PydanticObjectId] = None,
    session=None,
) -> List[Rental]:
    """Rentals on the unit whose inclusive [start, end] range intersects the given one."""
    query = {
        "camera_id": camera_id,
        "rental_status": {"$in": [getattr(s, "value", s) for s in statuses]},
        "start_date": {"$lte": to_midnight(end_date)},
        "end_date": {"$gte": to_midnight(start_date)},
    }
    if exclude_rental_id is not None:
        query["_id"] = {"$ne": exclude_rental_id}
    return await Rental.find(query, session=session).sort("+start_date").to_list()


async def is_camera_available(
    camera_id: PydanticObjectId,
    start_date: datetime,
    end_date: datetime,
    exclude_rental_id: Optional[PydanticObjectId] = None,
    session=None,
) -> bool:
    conflicts = await find_overlapping_rentals(
        camera_id, start_date, end_date, exclude_rental_id=exclude_rental_id, session=session
    )
    if conflicts:
        logger.info(
            f"Camera {camera_id} unavailable for {start_date.date()}..{end_date.date()}: "
            f"{len(conflicts)} overlapping rental(s)."
        )
    return not conflicts


async def check_availability(rental_id: PydanticObjectId, new_end_date: DateLike, session=None) -> AvailabilityResult:
    """
    Checks whether the rental's unit is free for the extension window
    [current end + 1 day, new_end_date], ignoring the rental itself.
    """
    try:
        rental = await Rental.get(rental_id, session=session)
        if not rental:
            return AvailabilityResult(is_available=False, error="Rental not found.")

        current_end = to_midnight(rental.end_date)
        new_end = to_midnight(new_end_date)
        if new_end <= current_end:
            return AvailabilityResult(is_available=False, error="New end date must be after current end date.")

        window_start = current_end + ONE_DAY
        logger.debug(f"Checking extension window {window_start.date()}..{new_end.date()} for rental {rental_id}")
        conflicts = await find_overlapping_rentals(
            rental.camera_id, window_start, new_end, exclude_rental_id=rental.id, session=session
        )
        if conflicts:
            logger.info(f"Extension of rental {rental_id} to {new_end.date()} blocked by {[str(c.id) for c in conflicts]}")
            return AvailabilityResult(
                is_available=False,
                error="Camera not available for requested dates - conflicts with other bookings.",
            )
        return AvailabilityResult(is_available=True)

    except Exception as e:
        logger.error(f"Error during extension availability check for rental {rental_id}: {e}", exc_info=True)
        return AvailabilityResult(is_available=False, error="Availability check failed.")
