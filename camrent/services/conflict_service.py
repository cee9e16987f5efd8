# camrent/services/conflict_service.py
from typing import List

from beanie import PydanticObjectId
from loguru import logger

from camrent.core.availability import camera_lock, find_overlapping_rentals
from camrent.core.conflicts import (
    ConfirmationOutcome, ConflictReport, ConflictResolution, ConflictSet,
    build_resolution_options, can_submit, partition_conflicts,
)
from camrent.core.errors import ConflictError, NotFoundError, ValidationError
from camrent.core.utils import parse_object_id, to_response, utcnow
from camrent.db.database import transaction_session
from camrent.models.camera import Camera
from camrent.models.enum import RentalStatus, ResolutionAction, ShippingStatus
from camrent.models.rental import Rental
from camrent.services import rental_service

CONFLICT_STATUSES = [RentalStatus.PENDING.value, RentalStatus.CONFIRMED.value, RentalStatus.ACTIVE.value]


async def find_conflicts(rental: Rental) -> ConflictSet:
    """Other pending, confirmed or active rentals on the same unit with overlapping dates."""
    overlapping = await find_overlapping_rentals(
        rental.camera_id, rental.start_date, rental.end_date,
        statuses=CONFLICT_STATUSES, exclude_rental_id=rental.id,
    )
    return partition_conflicts(overlapping)


async def find_available_units(rental: Rental) -> List[Camera]:
    """Active units of the same model, other than the rental's own, free for its dates."""
    current = await Camera.get(rental.camera_id)
    if not current:
        return []
    siblings = await Camera.find({
        "name": current.name,
        "is_active": True,
        "_id": {"$ne": current.id},
    }).sort("+serial_number").to_list()

    available = []
    for unit in siblings:
        overlapping = await find_overlapping_rentals(
            unit.id, rental.start_date, rental.end_date,
            statuses=CONFLICT_STATUSES, exclude_rental_id=rental.id,
        )
        if not overlapping:
            available.append(unit)
    return available


async def build_conflict_report(rental: Rental) -> ConflictReport:
    conflicts = await find_conflicts(rental)
    units = await find_available_units(rental)
    options = build_resolution_options(conflicts, [str(u.id) for u in units])
    return ConflictReport(
        rental=to_response(rental, Rental.Response),
        confirmed_conflicts=[to_response(r, Rental.Response) for r in conflicts.confirmed],
        pending_conflicts=[to_response(r, Rental.Response) for r in conflicts.pending],
        available_units=[to_response(u, Camera.Response) for u in units],
        options=options,
    )


async def _get_pending_rental(rental_id: PydanticObjectId) -> Rental:
    rental = await rental_service.get_rental(rental_id)
    if rental.rental_status != RentalStatus.PENDING:
        raise ConflictError(f"Only pending rentals can be confirmed (status '{rental.rental_status.value}').")
    return rental


async def confirm_rental_with_conflict_check(
    rental_id: PydanticObjectId,
    admin_id: PydanticObjectId,
) -> ConfirmationOutcome:
    """
    Confirm a pending rental when its unit is clear for the dates.

    When other bookings overlap nothing is written; the outcome carries the
    conflicts, the free units of the same model and the resolutions on offer.
    """
    rental = await _get_pending_rental(rental_id)
    conflicts = await find_conflicts(rental)
    if conflicts.has_conflicts:
        report = await build_conflict_report(rental)
        logger.info(
            f"Confirmation of rental {rental_id} held: {len(conflicts.confirmed)} confirmed and "
            f"{len(conflicts.pending)} pending conflict(s), {len(report.available_units)} free unit(s)."
        )
        return ConfirmationOutcome(confirmed=False, rental=report.rental, conflict_report=report)

    confirmed = await rental_service.confirm_rental(rental.id, admin_id)
    return ConfirmationOutcome(confirmed=True, rental=to_response(confirmed, Rental.Response))


async def transfer_rental_to_unit(
    rental_id: PydanticObjectId,
    unit_id: PydanticObjectId,
    session=None,
) -> Rental:
    """Move a not-yet-shipped rental onto another unit of the same model."""
    rental = await rental_service.get_rental(rental_id)
    if rental.rental_status not in (RentalStatus.PENDING, RentalStatus.CONFIRMED) \
            or rental.shipping_status != ShippingStatus.NONE:
        raise ConflictError(
            f"Cannot transfer rental in status '{rental.rental_status.value}/{rental.shipping_status.value}'."
        )
    if unit_id == rental.camera_id:
        raise ValidationError("Rental is already on that unit.")

    target = await Camera.get(unit_id)
    if not target or not target.is_active:
        raise NotFoundError("Camera not found.")

    async with camera_lock(unit_id):
        available_ids = {u.id for u in await find_available_units(rental)}
        if unit_id not in available_ids:
            raise ConflictError(f"Unit {target.serial_number} is not available for the rental's dates.")

        updated = await Rental.get_motor_collection().update_one(
            {"_id": rental.id, "camera_id": rental.camera_id},
            {"$set": {"camera_id": target.id, "updated_at": utcnow()}},
            session=session,
        )
        if updated.matched_count == 0:
            raise ConflictError("Rental changed while transferring; reload and retry.")

    logger.info(f"Rental {rental_id} transferred from unit {rental.camera_id} to {target.serial_number}.")
    return await Rental.get(rental.id, session=session)


async def resolve_conflict(
    rental_id: PydanticObjectId,
    resolution: ConflictResolution,
    admin_id: PydanticObjectId,
) -> ConfirmationOutcome:
    """Carry out the resolution an admin picked from the conflict report."""
    rental = await _get_pending_rental(rental_id)
    conflicts = await find_conflicts(rental)
    units = await find_available_units(rental)
    unit_ids = [str(u.id) for u in units]
    options = build_resolution_options(conflicts, unit_ids)

    if not options.offers(resolution.action):
        raise ValidationError(f"Action '{resolution.action.value}' is not available for this rental.")
    if not can_submit(resolution.action, resolution.selected_unit_id, resolution.rejection_reason):
        raise ValidationError(f"Action '{resolution.action.value}' is missing required input.")

    action = resolution.action
    if action == ResolutionAction.TRANSFER_CURRENT:
        if resolution.selected_unit_id not in unit_ids:
            raise ValidationError("Selected unit is not available for this rental.")
        unit_id = parse_object_id(resolution.selected_unit_id, "unit ID")
        async with transaction_session() as session:
            await transfer_rental_to_unit(rental.id, unit_id, session=session)
            confirmed = await rental_service.confirm_rental(rental.id, admin_id, session=session)
        return ConfirmationOutcome(
            confirmed=True,
            rental=to_response(confirmed, Rental.Response),
            message="Rental transferred and confirmed.",
        )

    if action == ResolutionAction.REJECT_CURRENT:
        rejected = await rental_service.reject_rental(rental.id, resolution.rejection_reason)
        return ConfirmationOutcome(
            confirmed=False,
            rental=to_response(rejected, Rental.Response),
            rejected_rental_ids=[str(rental.id)],
            message="Rental application rejected.",
        )

    if action == ResolutionAction.REJECT_CONFLICTS:
        rejected_ids = []
        async with transaction_session() as session:
            for conflict in conflicts.pending:
                await rental_service.reject_rental(conflict.id, resolution.rejection_reason, session=session)
                rejected_ids.append(str(conflict.id))
            confirmed = await rental_service.confirm_rental(rental.id, admin_id, session=session)
        logger.info(f"Rental {rental_id} confirmed after rejecting {len(rejected_ids)} pending conflict(s).")
        return ConfirmationOutcome(
            confirmed=True,
            rental=to_response(confirmed, Rental.Response),
            rejected_rental_ids=rejected_ids,
            message=f"Rejected {len(rejected_ids)} conflicting booking(s) and confirmed the rental.",
        )

    confirmed = await rental_service.confirm_rental(rental.id, admin_id)
    logger.warning(
        f"Rental {rental_id} confirmed despite conflicts with "
        f"{[str(r.id) for r in conflicts.confirmed + conflicts.pending]}: {options.confirm_anyway_warning}"
    )
    return ConfirmationOutcome(
        confirmed=True,
        rental=to_response(confirmed, Rental.Response),
        message=options.confirm_anyway_warning,
    )
