from datetime import timedelta

from camrent.core.utils import today
from camrent.models.enum import RentalStatus, ShippingStatus
from camrent.models.rental import Rental
from camrent.scheduler.jobs import EXPIRY_REASON, expire_stale_pending_rentals


async def test_expires_only_stale_pending_rentals(make_camera, make_rental, renter):
    camera = await make_camera()
    pending = dict(rental_status=RentalStatus.PENDING, shipping_status=ShippingStatus.NONE)
    stale = await make_rental(camera, renter, start=today() - timedelta(days=2), end=today() + timedelta(days=1), **pending)
    starts_today = await make_rental(camera, renter, start=today(), end=today() + timedelta(days=2), **pending)
    confirmed = await make_rental(
        camera, renter, start=today() - timedelta(days=3), end=today() + timedelta(days=1),
        rental_status=RentalStatus.CONFIRMED, shipping_status=ShippingStatus.NONE,
    )

    cancelled = await expire_stale_pending_rentals()

    assert cancelled == 1
    stale = await Rental.get(stale.id)
    assert stale.rental_status == RentalStatus.CANCELLED
    assert stale.cancellation_reason == EXPIRY_REASON
    assert (await Rental.get(starts_today.id)).rental_status == RentalStatus.PENDING
    assert (await Rental.get(confirmed.id)).rental_status == RentalStatus.CONFIRMED


async def test_nothing_to_expire(db):
    assert await expire_stale_pending_rentals() == 0
