# camrent/api/v1/endpoints/rentals.py
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Path, Query, Request, status
from loguru import logger
from pydantic import BaseModel

from camrent.core.conflicts import ConfirmationOutcome, ConflictReport, ConflictResolution
from camrent.core.rate_limiter import limiter
from camrent.core.security import get_current_active_user, require_admin, require_user
from camrent.core.utils import parse_object_id, to_response
from camrent.models.enum import RentalStatus
from camrent.models.payment import Payment
from camrent.models.rental import Rental
from camrent.models.user import User
from camrent.services import conflict_service, rental_service

router = APIRouter(tags=["Rentals"])


class RentalRequestResult(BaseModel):
    rental: Rental.Response
    payment: Payment.Response


def _rental_id(rental_id: str):
    return parse_object_id(rental_id, "rental ID")


@router.post("/", response_model=RentalRequestResult, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/hour")
async def request_rental(
    request: Request,
    rental_in: Rental.Create = Body(...),
    current_user: User = Depends(require_user),
):
    """A customer asks to rent a unit; an admin confirms it later."""
    rental, payment = await rental_service.create_rental_request(
        current_user, parse_object_id(rental_in.camera_id, "camera ID"),
        rental_in.start_date, rental_in.end_date,
    )
    return RentalRequestResult(
        rental=to_response(rental, Rental.Response),
        payment=to_response(payment, Payment.Response),
    )


@router.post("/admin", response_model=Rental.Response, status_code=status.HTTP_201_CREATED)
@limiter.limit("60/minute")
async def create_admin_booking(
    request: Request,
    booking_in: Rental.AdminCreate = Body(...),
    current_user: User = Depends(require_admin),
):
    rental = await rental_service.create_admin_booking(
        current_user, parse_object_id(booking_in.camera_id, "camera ID"),
        booking_in.start_date, booking_in.end_date,
        customer_name=booking_in.customer_name,
        customer_contact=booking_in.customer_contact,
        customer_email=booking_in.customer_email,
    )
    return to_response(rental, Rental.Response)


@router.get("/", response_model=List[Rental.Response])
@limiter.limit("120/minute")
async def read_rentals(
    request: Request,
    status: Optional[List[RentalStatus]] = Query(None),
    camera_id: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_active_user),
):
    camera_oid = parse_object_id(camera_id, "camera ID") if camera_id else None
    rentals = await rental_service.list_rentals(current_user, status=status, camera_id=camera_oid, skip=skip, limit=limit)
    return [to_response(r, Rental.Response) for r in rentals]


@router.get("/{rental_id}", response_model=Rental.Response)
async def read_rental(rental_id: str = Path(...), current_user: User = Depends(get_current_active_user)):
    rental = await rental_service.get_rental_for(current_user, _rental_id(rental_id))
    return to_response(rental, Rental.Response)


# --- Admin confirmation & conflicts ---
@router.post("/{rental_id}/confirm", response_model=ConfirmationOutcome)
@limiter.limit("60/minute")
async def confirm_rental(request: Request, rental_id: str = Path(...), current_user: User = Depends(require_admin)):
    """Confirms the rental, or returns a conflict report without changing anything."""
    logger.info(f"Admin '{current_user.username}' confirming rental '{rental_id}'.")
    return await conflict_service.confirm_rental_with_conflict_check(_rental_id(rental_id), current_user.id)


@router.get("/{rental_id}/conflicts", response_model=ConflictReport)
async def read_rental_conflicts(rental_id: str = Path(...), current_user: User = Depends(require_admin)):
    rental = await rental_service.get_rental(_rental_id(rental_id))
    return await conflict_service.build_conflict_report(rental)


@router.post("/{rental_id}/resolve-conflict", response_model=ConfirmationOutcome)
@limiter.limit("60/minute")
async def resolve_rental_conflict(
    request: Request,
    rental_id: str = Path(...),
    resolution: ConflictResolution = Body(...),
    current_user: User = Depends(require_admin),
):
    logger.info(f"Admin '{current_user.username}' resolving conflict on rental '{rental_id}' with '{resolution.action.value}'.")
    return await conflict_service.resolve_conflict(_rental_id(rental_id), resolution, current_user.id)


@router.post("/{rental_id}/transfer", response_model=Rental.Response)
@limiter.limit("60/minute")
async def transfer_rental(
    request: Request,
    rental_id: str = Path(...),
    transfer_in: Rental.Transfer = Body(...),
    current_user: User = Depends(require_admin),
):
    rental = await conflict_service.transfer_rental_to_unit(
        _rental_id(rental_id), parse_object_id(transfer_in.unit_id, "unit ID")
    )
    return to_response(rental, Rental.Response)


@router.post("/{rental_id}/reject", response_model=Rental.Response)
@limiter.limit("60/minute")
async def reject_rental(
    request: Request,
    rental_id: str = Path(...),
    reject_in: Rental.Reject = Body(...),
    current_user: User = Depends(require_admin),
):
    rental = await rental_service.reject_rental(_rental_id(rental_id), reject_in.reason)
    return to_response(rental, Rental.Response)


# --- Lifecycle ---
@router.post("/{rental_id}/cancel", response_model=Rental.Response)
@limiter.limit("30/minute")
async def cancel_rental(
    request: Request,
    rental_id: str = Path(...),
    reason: Optional[str] = Body(None, embed=True),
    current_user: User = Depends(get_current_active_user),
):
    rental = await rental_service.cancel_rental(current_user, _rental_id(rental_id), reason)
    return to_response(rental, Rental.Response)


@router.post("/{rental_id}/ship", response_model=Rental.Response)
@limiter.limit("60/minute")
async def ship_rental(request: Request, rental_id: str = Path(...), current_user: User = Depends(require_admin)):
    rental = await rental_service.mark_shipped(_rental_id(rental_id))
    return to_response(rental, Rental.Response)


@router.post("/{rental_id}/deliver", response_model=Rental.Response)
@limiter.limit("60/minute")
async def deliver_rental(request: Request, rental_id: str = Path(...), current_user: User = Depends(require_admin)):
    rental = await rental_service.mark_delivered(_rental_id(rental_id))
    return to_response(rental, Rental.Response)


@router.post("/{rental_id}/return-request", response_model=Rental.Response)
@limiter.limit("30/minute")
async def request_rental_return(
    request: Request,
    rental_id: str = Path(...),
    current_user: User = Depends(get_current_active_user),
):
    rental = await rental_service.request_return(current_user, _rental_id(rental_id))
    return to_response(rental, Rental.Response)


@router.post("/{rental_id}/returned", response_model=Rental.Response)
@limiter.limit("60/minute")
async def mark_rental_returned(request: Request, rental_id: str = Path(...), current_user: User = Depends(require_admin)):
    rental = await rental_service.mark_returned(_rental_id(rental_id))
    return to_response(rental, Rental.Response)
