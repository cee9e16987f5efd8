from datetime import datetime

import pytest

from camrent.core.conflicts import ConflictResolution
from camrent.core.errors import ConflictError, ValidationError
from camrent.models.enum import RentalStatus, ResolutionAction, ShippingStatus
from camrent.models.rental import Rental
from camrent.services import conflict_service

START = datetime(2030, 3, 1)
END = datetime(2030, 3, 4)


@pytest.fixture
def booking(make_rental):
    async def _booking(camera, status, start=START, end=END, user=None):
        return await make_rental(
            camera, user, start=start, end=end,
            rental_status=status, shipping_status=ShippingStatus.NONE,
        )
    return _booking


async def test_confirms_when_unit_is_clear(make_camera, booking, renter, admin):
    camera = await make_camera()
    rental = await booking(camera, RentalStatus.PENDING, user=renter)
    # Cancelled and non-overlapping rentals are ignored
    await booking(camera, RentalStatus.CANCELLED)
    await booking(camera, RentalStatus.CONFIRMED, start=datetime(2030, 3, 5), end=datetime(2030, 3, 6))

    outcome = await conflict_service.confirm_rental_with_conflict_check(rental.id, admin.id)

    assert outcome.confirmed
    assert outcome.conflict_report is None
    stored = await Rental.get(rental.id)
    assert stored.rental_status == RentalStatus.CONFIRMED
    assert stored.confirmed_by == admin.id


async def test_conflicts_produce_report_without_writing(make_camera, booking, renter, admin):
    unit = await make_camera(name="Sony A7 IV")
    spare = await make_camera(name="Sony A7 IV")
    await make_camera(name="Fujifilm X-T5")
    rental = await booking(unit, RentalStatus.PENDING, user=renter)
    confirmed = await booking(unit, RentalStatus.CONFIRMED, start=datetime(2030, 2, 27), end=datetime(2030, 3, 1))
    pending = await booking(unit, RentalStatus.PENDING, start=datetime(2030, 3, 3), end=datetime(2030, 3, 8))

    outcome = await conflict_service.confirm_rental_with_conflict_check(rental.id, admin.id)

    assert not outcome.confirmed
    report = outcome.conflict_report
    assert [r.id for r in report.confirmed_conflicts] == [str(confirmed.id)]
    assert [r.id for r in report.pending_conflicts] == [str(pending.id)]
    assert [u.id for u in report.available_units] == [str(spare.id)]
    assert report.options.default_action == ResolutionAction.TRANSFER_CURRENT
    assert ResolutionAction.REJECT_CURRENT not in report.options.available_actions
    assert (await Rental.get(rental.id)).rental_status == RentalStatus.PENDING


async def test_busy_sibling_is_not_available(make_camera, booking, renter):
    unit = await make_camera(name="Sony A7 IV")
    sibling = await make_camera(name="Sony A7 IV")
    rental = await booking(unit, RentalStatus.PENDING, user=renter)
    await booking(sibling, RentalStatus.PENDING, start=datetime(2030, 3, 4), end=datetime(2030, 3, 9))

    assert await conflict_service.find_available_units(rental) == []


async def test_confirm_requires_pending(make_camera, booking, admin):
    rental = await booking(await make_camera(), RentalStatus.CONFIRMED)

    with pytest.raises(ConflictError):
        await conflict_service.confirm_rental_with_conflict_check(rental.id, admin.id)


async def test_resolve_by_transfer(make_camera, booking, renter, admin):
    unit = await make_camera(name="Sony A7 IV")
    spare = await make_camera(name="Sony A7 IV")
    rental = await booking(unit, RentalStatus.PENDING, user=renter)
    await booking(unit, RentalStatus.CONFIRMED)

    outcome = await conflict_service.resolve_conflict(
        rental.id,
        ConflictResolution(action=ResolutionAction.TRANSFER_CURRENT, selected_unit_id=str(spare.id)),
        admin.id,
    )

    assert outcome.confirmed
    stored = await Rental.get(rental.id)
    assert stored.camera_id == spare.id
    assert stored.rental_status == RentalStatus.CONFIRMED


async def test_transfer_target_must_be_free(make_camera, booking, renter, admin):
    unit = await make_camera(name="Sony A7 IV")
    await make_camera(name="Sony A7 IV")
    other_model = await make_camera(name="Nikon Z6")
    rental = await booking(unit, RentalStatus.PENDING, user=renter)
    await booking(unit, RentalStatus.CONFIRMED)

    with pytest.raises(ValidationError, match="Selected unit is not available"):
        await conflict_service.resolve_conflict(
            rental.id,
            ConflictResolution(action=ResolutionAction.TRANSFER_CURRENT, selected_unit_id=str(other_model.id)),
            admin.id,
        )
    assert (await Rental.get(rental.id)).camera_id == unit.id


async def test_reject_current_needs_reason_and_offer(make_camera, booking, renter, admin):
    unit = await make_camera()
    rental = await booking(unit, RentalStatus.PENDING, user=renter)
    await booking(unit, RentalStatus.PENDING)

    with pytest.raises(ValidationError, match="missing required input"):
        await conflict_service.resolve_conflict(
            rental.id, ConflictResolution(action=ResolutionAction.REJECT_CURRENT), admin.id
        )

    outcome = await conflict_service.resolve_conflict(
        rental.id,
        ConflictResolution(action=ResolutionAction.REJECT_CURRENT, rejection_reason="Unit already promised"),
        admin.id,
    )

    assert not outcome.confirmed
    stored = await Rental.get(rental.id)
    assert stored.rental_status == RentalStatus.REJECTED
    assert stored.rejection_reason == "Unit already promised"


async def test_transfer_not_offered_without_free_unit(make_camera, booking, renter, admin):
    unit = await make_camera()
    rental = await booking(unit, RentalStatus.PENDING, user=renter)
    await booking(unit, RentalStatus.PENDING)

    with pytest.raises(ValidationError, match="not available for this rental"):
        await conflict_service.resolve_conflict(
            rental.id,
            ConflictResolution(action=ResolutionAction.TRANSFER_CURRENT, selected_unit_id=str(unit.id)),
            admin.id,
        )


async def test_reject_conflicts_then_confirm(make_camera, booking, renter, admin):
    unit = await make_camera()
    rental = await booking(unit, RentalStatus.PENDING, user=renter)
    first = await booking(unit, RentalStatus.PENDING)
    second = await booking(unit, RentalStatus.PENDING, start=datetime(2030, 3, 4), end=datetime(2030, 3, 5))

    outcome = await conflict_service.resolve_conflict(
        rental.id,
        ConflictResolution(action=ResolutionAction.REJECT_CONFLICTS, rejection_reason="Dates taken"),
        admin.id,
    )

    assert outcome.confirmed
    assert sorted(outcome.rejected_rental_ids) == sorted([str(first.id), str(second.id)])
    for conflict_id in (first.id, second.id):
        assert (await Rental.get(conflict_id)).rental_status == RentalStatus.REJECTED
    assert (await Rental.get(rental.id)).rental_status == RentalStatus.CONFIRMED


async def test_confirm_anyway_double_books(make_camera, booking, renter, admin):
    unit = await make_camera()
    rental = await booking(unit, RentalStatus.PENDING, user=renter)
    confirmed = await booking(unit, RentalStatus.CONFIRMED)

    outcome = await conflict_service.resolve_conflict(
        rental.id, ConflictResolution(action=ResolutionAction.CONFIRM_ANYWAY), admin.id
    )

    assert outcome.confirmed
    assert "confirmed bookings" in outcome.message
    assert (await Rental.get(rental.id)).rental_status == RentalStatus.CONFIRMED
    assert (await Rental.get(confirmed.id)).rental_status == RentalStatus.CONFIRMED


async def test_direct_transfer_rejects_shipped_rental(make_camera, make_rental, renter):
    unit = await make_camera(name="Sony A7 IV")
    spare = await make_camera(name="Sony A7 IV")
    rental = await make_rental(
        unit, renter, start=START, end=END,
        rental_status=RentalStatus.CONFIRMED, shipping_status=ShippingStatus.IN_TRANSIT,
    )

    with pytest.raises(ConflictError, match="Cannot transfer"):
        await conflict_service.transfer_rental_to_unit(rental.id, spare.id)
