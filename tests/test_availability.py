from datetime import date, datetime

import pytest
from beanie import PydanticObjectId

from camrent.core.availability import camera_lock, check_availability, find_overlapping_rentals, is_camera_available
from camrent.core.utils import calculate_extension_days, calculate_rental_days, to_midnight
from camrent.core.errors import ValidationError
from camrent.models.enum import RentalStatus, ShippingStatus


def test_extension_days_scenario():
    days = calculate_extension_days(date(2024, 1, 10), date(2024, 1, 13))
    assert days == 3
    assert days * 500 == 1500


def test_rental_days_are_inclusive():
    assert calculate_rental_days(date(2024, 1, 5), date(2024, 1, 5)) == 1
    assert calculate_rental_days(date(2024, 1, 5), date(2024, 1, 10)) == 6
    with pytest.raises(ValidationError):
        calculate_rental_days(date(2024, 1, 10), date(2024, 1, 5))


def test_to_midnight_normalizes_inputs():
    assert to_midnight("2024-01-10") == datetime(2024, 1, 10)
    assert to_midnight(datetime(2024, 1, 10, 17, 45)) == datetime(2024, 1, 10)
    with pytest.raises(ValidationError):
        to_midnight("not-a-date")


def test_camera_lock_is_shared_per_unit():
    unit = PydanticObjectId()

    assert camera_lock(unit) is camera_lock(str(unit))
    assert camera_lock(unit) is not camera_lock(PydanticObjectId())


async def test_window_is_free(make_camera, make_rental, renter):
    camera = await make_camera()
    rental = await make_rental(camera, renter, end=datetime(2024, 1, 10))

    result = await check_availability(rental.id, date(2024, 1, 13))

    assert result.is_available
    assert result.error is None


async def test_conflict_inside_window_blocks(make_camera, make_rental, renter):
    camera = await make_camera()
    rental = await make_rental(camera, renter, end=datetime(2024, 1, 10))
    await make_rental(
        camera, start=datetime(2024, 1, 13), end=datetime(2024, 1, 15),
        rental_status=RentalStatus.CONFIRMED, shipping_status=ShippingStatus.NONE,
    )

    result = await check_availability(rental.id, date(2024, 1, 13))

    assert not result.is_available
    assert result.error == "Camera not available for requested dates - conflicts with other bookings."


async def test_window_starts_day_after_current_end(make_camera, make_rental, renter):
    camera = await make_camera()
    rental = await make_rental(camera, renter, end=datetime(2024, 1, 10))
    # Ends on the rental's current last day: outside [2024-01-11, 2024-01-13]
    await make_rental(
        camera, start=datetime(2024, 1, 1), end=datetime(2024, 1, 10),
        rental_status=RentalStatus.CONFIRMED, shipping_status=ShippingStatus.NONE,
    )
    # Starts after the requested end
    await make_rental(
        camera, start=datetime(2024, 1, 14), end=datetime(2024, 1, 20),
        rental_status=RentalStatus.CONFIRMED, shipping_status=ShippingStatus.NONE,
    )

    result = await check_availability(rental.id, date(2024, 1, 13))

    assert result.is_available


async def test_pending_and_other_units_do_not_block(make_camera, make_rental, renter):
    camera = await make_camera()
    other_unit = await make_camera()
    rental = await make_rental(camera, renter, end=datetime(2024, 1, 10))
    await make_rental(
        camera, start=datetime(2024, 1, 11), end=datetime(2024, 1, 12),
        rental_status=RentalStatus.PENDING, shipping_status=ShippingStatus.NONE,
    )
    await make_rental(
        other_unit, start=datetime(2024, 1, 11), end=datetime(2024, 1, 12),
        rental_status=RentalStatus.ACTIVE,
    )

    result = await check_availability(rental.id, date(2024, 1, 13))

    assert result.is_available


async def test_new_end_must_be_after_current_end(make_camera, make_rental, renter):
    camera = await make_camera()
    rental = await make_rental(camera, renter, end=datetime(2024, 1, 10))

    for new_end in (date(2024, 1, 10), date(2024, 1, 9)):
        result = await check_availability(rental.id, new_end)
        assert not result.is_available
        assert result.error == "New end date must be after current end date."


async def test_unknown_rental(db):
    result = await check_availability(PydanticObjectId(), date(2024, 1, 13))

    assert result.error == "Rental not found."


async def test_find_overlapping_excludes_rental_itself(make_camera, make_rental, renter):
    camera = await make_camera()
    rental = await make_rental(camera, renter, start=datetime(2024, 1, 5), end=datetime(2024, 1, 10))

    overlapping = await find_overlapping_rentals(camera.id, datetime(2024, 1, 6), datetime(2024, 1, 7))
    assert [r.id for r in overlapping] == [rental.id]

    assert await is_camera_available(
        camera.id, datetime(2024, 1, 6), datetime(2024, 1, 7), exclude_rental_id=rental.id
    )
