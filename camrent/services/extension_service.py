# camrent/services/extension_service.py
from typing import Dict, List, Optional

from beanie import PydanticObjectId
from loguru import logger
from pymongo import ReturnDocument

from camrent.core.availability import camera_lock, check_availability
from camrent.core.eligibility import check_eligibility, has_pending_extension
from camrent.core.errors import (
    AuthorizationError, ConflictError, NotFoundError, PartialFailureError, SyncError, ValidationError,
)
from camrent.core.storage import ReceiptFile, validate_receipt
from camrent.core.utils import DateLike, calculate_extension_days, to_midnight, to_response, utcnow
from camrent.db.database import transaction_session
from camrent.models.camera import Camera
from camrent.models.enum import ExtensionStatus, RequestedByRole
from camrent.models.extension import (
    AdminExtensionEntry, ExtensionHistoryEntry, ExtensionResult, RentalExtension,
)
from camrent.models.payment import Payment
from camrent.models.rental import Rental, RentalSummary
from camrent.models.user import CustomerSummary, User, UserRole
from camrent.services.payment_service import create_extension_payment, list_payments


# --- Lookups ---
async def get_extension(extension_id: PydanticObjectId) -> RentalExtension:
    extension = await RentalExtension.get(extension_id)
    if not extension:
        raise NotFoundError("Extension not found.")
    return extension


async def _get_rental(rental_id: PydanticObjectId) -> Rental:
    rental = await Rental.get(rental_id)
    if not rental:
        raise NotFoundError("Rental not found.")
    return rental


def _validate_new_end(rental: Rental, new_end_date: DateLike):
    current_end = to_midnight(rental.end_date)
    new_end = to_midnight(new_end_date)
    if new_end <= current_end:
        raise ValidationError("New end date must be after current end date.")
    return current_end, new_end


def _price_extension(rental: Rental, current_end, new_end):
    extension_days = calculate_extension_days(current_end, new_end)
    if extension_days < 1:
        raise ValidationError("Extension days must be positive.")
    return extension_days, extension_days * rental.price_per_day


def _result(extension: RentalExtension, payment: Optional[Payment] = None) -> ExtensionResult:
    return ExtensionResult(
        extension=to_response(extension, RentalExtension.Response),
        payment=to_response(payment, Payment.Response) if payment else None,
    )


# --- User path ---
async def request_extension(
    rental_id: PydanticObjectId,
    user_id: PydanticObjectId,
    new_end_date: DateLike,
) -> ExtensionResult:
    """
    A renter asks to push their rental's end date.

    Runs the availability check but not the eligibility gate, so an owner may
    ask before the camera is delivered. A second pending request is still
    refused. The companion payment is created right after the extension; if
    that fails outside a transaction the extension stays and a
    PartialFailureError names it.
    """
    rental = await _get_rental(rental_id)
    if rental.user_id != user_id:
        logger.warning(f"User {user_id} tried to extend rental {rental_id} owned by {rental.user_id}.")
        raise AuthorizationError("Unauthorized.")

    current_end, new_end = _validate_new_end(rental, new_end_date)

    async with camera_lock(rental.camera_id):
        availability = await check_availability(rental.id, new_end)
        if not availability.is_available:
            raise ConflictError(availability.error)

        if await has_pending_extension(rental.id):
            raise ConflictError("Rental already has a pending extension request.")

        extension_days, additional_price = _price_extension(rental, current_end, new_end)

        async with transaction_session() as session:
            extension = RentalExtension(
                rental_id=rental.id,
                requested_by=user_id,
                requested_by_role=RequestedByRole.USER,
                original_end_date=current_end,
                requested_end_date=new_end,
                extension_days=extension_days,
                additional_price=additional_price,
            )
            try:
                await extension.insert(session=session)
            except Exception as e:
                logger.error(f"Failed to insert extension for rental {rental_id}: {e}", exc_info=True)
                raise ConflictError("Failed to create extension request.") from e
            logger.info(
                f"Extension {extension.id} requested for rental {rental_id}: "
                f"{extension_days} day(s), additional {additional_price}"
            )

            try:
                payment = await create_extension_payment(
                    extension.id, rental.id, user_id, additional_price, session=session
                )
            except Exception as e:
                if session is not None:
                    raise
                logger.error(f"Extension {extension.id} created but payment failed: {e}", exc_info=True)
                raise PartialFailureError(
                    f"Extension created, but payment failed: {e}", extension_id=str(extension.id)
                ) from e

    return _result(extension, payment)


async def get_extension_history(user_id: PydanticObjectId) -> List[ExtensionHistoryEntry]:
    """The user's extensions, newest first, with rental summary and payments merged in."""
    extensions = await RentalExtension.find({"requested_by": user_id}).sort("-requested_at").to_list()
    if not extensions:
        return []

    summaries = await _rental_summaries({ext.rental_id for ext in extensions})
    payments = await list_payments(extension_ids=[ext.id for ext in extensions])
    payments_by_extension: Dict[str, List[Payment.Response]] = {}
    for payment in payments:
        payments_by_extension.setdefault(str(payment.extension_id), []).append(
            to_response(payment, Payment.Response)
        )

    history = []
    for ext in extensions:
        entry = to_response(ext, ExtensionHistoryEntry)
        entry.rental = summaries.get(str(ext.rental_id))
        entry.payments = payments_by_extension.get(str(ext.id), [])
        history.append(entry)
    return history


# --- Admin path ---
async def create_admin_extension(
    rental_id: PydanticObjectId,
    admin_id: PydanticObjectId,
    new_end_date: DateLike,
    notes: Optional[str] = None,
    receipt: Optional[ReceiptFile] = None,
) -> ExtensionResult:
    """Admin extends an active, delivered rental, optionally with payment proof."""
    if receipt is not None:
        validate_receipt(receipt)
    rental = await _get_rental(rental_id)

    eligibility = await check_eligibility(rental.id)
    if not eligibility.is_eligible:
        raise ConflictError(eligibility.error)

    current_end, new_end = _validate_new_end(rental, new_end_date)

    async with camera_lock(rental.camera_id):
        availability = await check_availability(rental.id, new_end)
        if not availability.is_available:
            raise ConflictError(availability.error)

        extension_days, additional_price = _price_extension(rental, current_end, new_end)

        async with transaction_session() as session:
            extension = RentalExtension(
                rental_id=rental.id,
                requested_by=admin_id,
                requested_by_role=RequestedByRole.ADMIN,
                original_end_date=current_end,
                requested_end_date=new_end,
                extension_days=extension_days,
                additional_price=additional_price,
                admin_notes=notes or None,
            )
            try:
                await extension.insert(session=session)
            except Exception as e:
                logger.error(f"Failed to insert admin extension for rental {rental_id}: {e}", exc_info=True)
                raise ConflictError("Failed to create extension request.") from e
            logger.info(f"Admin {admin_id} created extension {extension.id} for rental {rental_id}.")

            if receipt is None:
                return _result(extension)

            try:
                payment = await create_extension_payment(
                    extension.id, rental.id, rental.user_id, additional_price, receipt=receipt, session=session
                )
            except Exception as e:
                if session is not None:
                    raise
                logger.error(f"Extension {extension.id} created but payment upload failed: {e}", exc_info=True)
                raise PartialFailureError(
                    f"Extension created, but payment upload failed: {e}", extension_id=str(extension.id)
                ) from e

    return _result(extension, payment)


async def attach_extension_payment(
    extension_id: PydanticObjectId,
    acting_user: User,
    receipt: Optional[ReceiptFile] = None,
) -> Payment:
    """Retry the payment step for an extension; never creates a second payment."""
    if receipt is not None:
        validate_receipt(receipt)
    extension = await get_extension(extension_id)
    rental = await _get_rental(extension.rental_id)
    if acting_user.role != UserRole.ADMIN and rental.user_id != acting_user.id:
        raise AuthorizationError("Unauthorized.")
    return await create_extension_payment(
        extension.id, rental.id, rental.user_id, extension.additional_price, receipt=receipt
    )


async def approve_extension(extension_id: PydanticObjectId, admin_id: PydanticObjectId) -> RentalExtension:
    """
    pending -> approved, then move the rental's end date.

    The status change is conditional on the row still being pending. If the
    rental write fails the approval is undone, by transaction abort or by a
    compensating write, and SyncError is raised.
    """
    extension = await get_extension(extension_id)
    if extension.extension_status != ExtensionStatus.PENDING:
        raise ConflictError(f"Invalid status '{extension.extension_status.value}'.")

    now = utcnow()
    collection = RentalExtension.get_motor_collection()
    async with transaction_session() as session:
        updated = await collection.find_one_and_update(
            {"_id": extension.id, "extension_status": ExtensionStatus.PENDING.value},
            {"$set": {
                "extension_status": ExtensionStatus.APPROVED.value,
                "approved_at": now,
                "decided_by": admin_id,
                "updated_at": now,
            }},
            return_document=ReturnDocument.AFTER,
            session=session,
        )
        if updated is None:
            current = await RentalExtension.get(extension.id, session=session)
            status = current.extension_status.value if current else "missing"
            raise ConflictError(f"Invalid status '{status}'.")

        try:
            result = await Rental.get_motor_collection().update_one(
                {"_id": extension.rental_id},
                {"$set": {"end_date": extension.requested_end_date, "updated_at": now}},
                session=session,
            )
            if result.matched_count == 0:
                raise NotFoundError("Rental not found.")
        except Exception as e:
            logger.error(f"Rental update failed while approving extension {extension_id}: {e}", exc_info=True)
            if session is None:
                await _revert_approval(extension.id)
            raise SyncError(f"Extension approval rolled back: rental update failed: {e}") from e

    logger.info(f"Extension {extension_id} approved by {admin_id}; rental {extension.rental_id} now ends {extension.requested_end_date.date()}.")
    return await get_extension(extension.id)


async def _revert_approval(extension_id: PydanticObjectId):
    try:
        await RentalExtension.get_motor_collection().update_one(
            {"_id": extension_id, "extension_status": ExtensionStatus.APPROVED.value},
            {
                "$set": {"extension_status": ExtensionStatus.PENDING.value, "updated_at": utcnow()},
                "$unset": {"approved_at": "", "decided_by": ""},
            },
        )
        logger.warning(f"Extension {extension_id} reverted to pending after failed rental update.")
    except Exception as e:
        logger.critical(f"Extension {extension_id} is approved but its rental was not updated; manual fix needed: {e}")


async def reject_extension(
    extension_id: PydanticObjectId,
    admin_id: PydanticObjectId,
    notes: Optional[str] = None,
) -> RentalExtension:
    """pending -> rejected. The parent rental is left untouched."""
    extension = await get_extension(extension_id)
    if extension.extension_status != ExtensionStatus.PENDING:
        raise ConflictError(f"Invalid status '{extension.extension_status.value}'.")

    now = utcnow()
    updates = {
        "extension_status": ExtensionStatus.REJECTED.value,
        "rejected_at": now,
        "decided_by": admin_id,
        "updated_at": now,
    }
    if notes:
        updates["admin_notes"] = notes

    updated = await RentalExtension.get_motor_collection().find_one_and_update(
        {"_id": extension.id, "extension_status": ExtensionStatus.PENDING.value},
        {"$set": updates},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        current = await get_extension(extension.id)
        raise ConflictError(f"Invalid status '{current.extension_status.value}'.")

    logger.info(f"Extension {extension_id} rejected by {admin_id}.")
    return await get_extension(extension.id)


async def get_all_extensions(status: Optional[ExtensionStatus] = None) -> List[AdminExtensionEntry]:
    query = {"extension_status": status.value} if status else {}
    extensions = await RentalExtension.find(query).sort("-requested_at").to_list()
    if not extensions:
        return []

    summaries = await _rental_summaries({ext.rental_id for ext in extensions})
    rentals = await Rental.find({"_id": {"$in": list({ext.rental_id for ext in extensions})}}).to_list()
    user_ids = {r.user_id for r in rentals if r.user_id is not None}
    users = await User.find({"_id": {"$in": list(user_ids)}}).to_list() if user_ids else []
    customers = {
        str(u.id): CustomerSummary(
            id=str(u.id), username=u.username, full_name=u.full_name,
            email=u.email, contact_number=u.contact_number,
        )
        for u in users
    }
    customer_by_rental = {str(r.id): customers.get(str(r.user_id)) for r in rentals}

    entries = []
    for ext in extensions:
        entry = to_response(ext, AdminExtensionEntry)
        entry.rental = summaries.get(str(ext.rental_id))
        entry.customer = customer_by_rental.get(str(ext.rental_id))
        entries.append(entry)
    return entries


async def get_pending_extensions() -> List[AdminExtensionEntry]:
    return await get_all_extensions(ExtensionStatus.PENDING)


async def _rental_summaries(rental_ids) -> Dict[str, RentalSummary]:
    rentals = await Rental.find({"_id": {"$in": list(rental_ids)}}).to_list()
    cameras = await Camera.find({"_id": {"$in": list({r.camera_id for r in rentals})}}).to_list()
    camera_by_id = {str(c.id): c for c in cameras}
    summaries = {}
    for rental in rentals:
        camera = camera_by_id.get(str(rental.camera_id))
        summaries[str(rental.id)] = RentalSummary(
            id=str(rental.id),
            camera_id=str(rental.camera_id),
            camera_name=camera.name if camera else None,
            serial_number=camera.serial_number if camera else None,
            start_date=rental.start_date,
            end_date=rental.end_date,
            rental_status=rental.rental_status,
        )
    return summaries
