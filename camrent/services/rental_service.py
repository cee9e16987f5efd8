# camrent/services/rental_service.py
from typing import Dict, Iterable, List, Optional, Tuple

from beanie import PydanticObjectId
from loguru import logger
from pymongo import ReturnDocument

from camrent.core.availability import camera_lock, is_camera_available
from camrent.core.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from camrent.core.utils import DateLike, calculate_rental_days, to_midnight, today, utcnow
from camrent.db.database import transaction_session
from camrent.models.camera import Camera
from camrent.models.enum import RentalStatus, ShippingStatus
from camrent.models.payment import Payment
from camrent.models.rental import Rental
from camrent.models.user import User, UserRole
from camrent.services.payment_service import create_rental_payment

# (from rental_status, from shipping_status) pairs each transition accepts
_TRANSITIONS: Dict[str, Tuple[Iterable[RentalStatus], Optional[Iterable[ShippingStatus]]]] = {
    "confirm": ([RentalStatus.PENDING], None),
    "reject": ([RentalStatus.PENDING], None),
    "cancel": ([RentalStatus.PENDING, RentalStatus.CONFIRMED], [ShippingStatus.NONE]),
    "ship": ([RentalStatus.CONFIRMED], [ShippingStatus.NONE]),
    "deliver": ([RentalStatus.CONFIRMED], [ShippingStatus.IN_TRANSIT]),
    "request_return": ([RentalStatus.ACTIVE], [ShippingStatus.DELIVERED]),
    "returned": ([RentalStatus.ACTIVE], [ShippingStatus.DELIVERED, ShippingStatus.RETURN_SCHEDULED]),
}


async def get_rental(rental_id: PydanticObjectId) -> Rental:
    rental = await Rental.get(rental_id)
    if not rental:
        raise NotFoundError("Rental not found.")
    return rental


async def get_active_camera(camera_id: PydanticObjectId) -> Camera:
    camera = await Camera.find_one({"_id": camera_id, "is_active": True})
    if not camera:
        raise NotFoundError("Camera not found.")
    return camera


def _prepare_dates(start_date: DateLike, end_date: DateLike):
    start = to_midnight(start_date)
    end = to_midnight(end_date)
    if end < start:
        raise ValidationError("End date cannot be before start date.")
    if start < today():
        raise ValidationError("Start date cannot be in the past.")
    return start, end


async def create_rental_request(
    user: User,
    camera_id: PydanticObjectId,
    start_date: DateLike,
    end_date: DateLike,
) -> Tuple[Rental, Payment]:
    """A user books a unit; the rental waits for admin confirmation."""
    start, end = _prepare_dates(start_date, end_date)
    camera = await get_active_camera(camera_id)
    rental_days = calculate_rental_days(start, end)

    async with camera_lock(camera.id):
        if not await is_camera_available(camera.id, start, end):
            raise ConflictError(f"Camera '{camera.name}' is not available for the selected dates.")

        async with transaction_session() as session:
            rental = Rental(
                camera_id=camera.id,
                user_id=user.id,
                start_date=start,
                end_date=end,
                price_per_day=camera.price_per_day,
                total_price=rental_days * camera.price_per_day,
                customer_name=user.full_name or user.username,
                customer_contact=user.contact_number,
                customer_email=user.email,
            )
            await rental.insert(session=session)
            payment = await create_rental_payment(rental.id, user.id, rental.total_price, session=session)

    logger.info(
        f"User '{user.username}' requested camera {camera.serial_number} "
        f"{start.date()}..{end.date()} ({rental_days} day(s), {rental.total_price})."
    )
    return rental, payment


async def create_admin_booking(
    admin: User,
    camera_id: PydanticObjectId,
    start_date: DateLike,
    end_date: DateLike,
    customer_name: str,
    customer_contact: str,
    customer_email: Optional[str] = None,
) -> Rental:
    """Walk-in booking entered by an admin; it starts out confirmed."""
    if not customer_name or not customer_name.strip():
        raise ValidationError("Customer name is required.")
    start, end = _prepare_dates(start_date, end_date)
    camera = await get_active_camera(camera_id)
    rental_days = calculate_rental_days(start, end)
    now = utcnow()

    async with camera_lock(camera.id):
        if not await is_camera_available(camera.id, start, end):
            raise ConflictError(f"Camera '{camera.name}' is not available for the selected dates.")
        rental = Rental(
            camera_id=camera.id,
            start_date=start,
            end_date=end,
            rental_status=RentalStatus.CONFIRMED,
            price_per_day=camera.price_per_day,
            total_price=rental_days * camera.price_per_day,
            customer_name=customer_name,
            customer_contact=customer_contact,
            customer_email=customer_email,
            admin_created=True,
            confirmed_at=now,
            confirmed_by=admin.id,
        )
        await rental.insert()

    logger.info(f"Admin '{admin.username}' booked camera {camera.serial_number} for '{customer_name}'.")
    return rental


async def list_rentals(
    user: User,
    status: Optional[List[RentalStatus]] = None,
    camera_id: Optional[PydanticObjectId] = None,
    skip: int = 0,
    limit: int = 50,
) -> List[Rental]:
    query = {}
    if user.role != UserRole.ADMIN:
        query["user_id"] = user.id
    if status:
        query["rental_status"] = {"$in": [s.value for s in status]}
    if camera_id is not None:
        query["camera_id"] = camera_id
    return await Rental.find(query).sort("-created_at").skip(skip).limit(limit).to_list()


async def get_rental_for(user: User, rental_id: PydanticObjectId) -> Rental:
    rental = await get_rental(rental_id)
    if user.role != UserRole.ADMIN and rental.user_id != user.id:
        raise AuthorizationError("Unauthorized.")
    return rental


async def _transition(rental_id: PydanticObjectId, name: str, updates: dict, session=None) -> Rental:
    """
    Apply a lifecycle step with a conditional update so a concurrent
    transition on the same rental cannot be overwritten.
    """
    statuses, shipping = _TRANSITIONS[name]
    query = {"_id": rental_id, "rental_status": {"$in": [s.value for s in statuses]}}
    if shipping is not None:
        query["shipping_status"] = {"$in": [s.value for s in shipping]}

    updates = {**updates, "updated_at": utcnow()}
    updated = await Rental.get_motor_collection().find_one_and_update(
        query, {"$set": updates}, return_document=ReturnDocument.AFTER, session=session
    )
    if updated is None:
        current = await get_rental(rental_id)
        raise ConflictError(
            f"Cannot {name.replace('_', ' ')} rental in status "
            f"'{current.rental_status.value}/{current.shipping_status.value}'."
        )
    rental = await Rental.get(rental_id, session=session)
    logger.info(f"Rental {rental_id}: {name} -> {rental.rental_status.value}/{rental.shipping_status.value}")
    return rental


async def confirm_rental(rental_id: PydanticObjectId, admin_id: PydanticObjectId, session=None) -> Rental:
    return await _transition(rental_id, "confirm", {
        "rental_status": RentalStatus.CONFIRMED.value,
        "confirmed_at": utcnow(),
        "confirmed_by": admin_id,
    }, session=session)


async def reject_rental(rental_id: PydanticObjectId, reason: str, session=None) -> Rental:
    if not reason or not reason.strip():
        raise ValidationError("Rejection reason is required.")
    return await _transition(rental_id, "reject", {
        "rental_status": RentalStatus.REJECTED.value,
        "rejection_reason": reason.strip(),
        "rejected_at": utcnow(),
    }, session=session)


async def cancel_rental(user: User, rental_id: PydanticObjectId, reason: Optional[str] = None) -> Rental:
    """Owners and admins may cancel before the camera ships."""
    await get_rental_for(user, rental_id)
    return await _transition(rental_id, "cancel", {
        "rental_status": RentalStatus.CANCELLED.value,
        "cancellation_reason": reason,
        "cancelled_at": utcnow(),
    })


async def mark_shipped(rental_id: PydanticObjectId) -> Rental:
    return await _transition(rental_id, "ship", {
        "shipping_status": ShippingStatus.IN_TRANSIT.value,
        "shipped_at": utcnow(),
    })


async def mark_delivered(rental_id: PydanticObjectId) -> Rental:
    """Delivery starts the rental."""
    return await _transition(rental_id, "deliver", {
        "rental_status": RentalStatus.ACTIVE.value,
        "shipping_status": ShippingStatus.DELIVERED.value,
        "delivered_at": utcnow(),
    })


async def request_return(user: User, rental_id: PydanticObjectId) -> Rental:
    await get_rental_for(user, rental_id)
    return await _transition(rental_id, "request_return", {
        "shipping_status": ShippingStatus.RETURN_SCHEDULED.value,
        "return_initiated_at": utcnow(),
    })


async def mark_returned(rental_id: PydanticObjectId) -> Rental:
    return await _transition(rental_id, "returned", {
        "rental_status": RentalStatus.COMPLETED.value,
        "shipping_status": ShippingStatus.RETURN_COMPLETED.value,
        "returned_at": utcnow(),
    })
