# camrent/api/v1/endpoints/extensions.py
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, File, Form, Path, Query, Request, UploadFile, status
from loguru import logger

from camrent.core.availability import check_availability
from camrent.core.eligibility import check_eligibility
from camrent.core.rate_limiter import limiter
from camrent.core.security import get_current_active_user, require_admin, require_user
from camrent.core.storage import read_upload
from camrent.core.utils import parse_object_id, to_response
from camrent.models.enum import ExtensionStatus
from camrent.models.extension import (
    AdminExtensionEntry, AvailabilityResult, EligibilityResult, ExtensionHistoryEntry,
    ExtensionResult, RentalExtension,
)
from camrent.models.payment import Payment
from camrent.models.user import User, UserRole
from camrent.services import extension_service, rental_service

router = APIRouter(tags=["Rental Extensions"])


@router.get("/availability", response_model=AvailabilityResult)
async def read_extension_availability(
    rental_id: str = Query(...),
    new_end_date: date = Query(...),
    current_user: User = Depends(get_current_active_user),
):
    """Whether the rental's unit is free from the day after its current end up to new_end_date."""
    rental = await rental_service.get_rental_for(current_user, parse_object_id(rental_id, "rental ID"))
    return await check_availability(rental.id, new_end_date)


@router.get("/eligibility/{rental_id}", response_model=EligibilityResult)
async def read_extension_eligibility(rental_id: str = Path(...), current_user: User = Depends(get_current_active_user)):
    rental = await rental_service.get_rental_for(current_user, parse_object_id(rental_id, "rental ID"))
    return await check_eligibility(rental.id)


@router.get("/history", response_model=List[ExtensionHistoryEntry])
async def read_extension_history(current_user: User = Depends(get_current_active_user)):
    return await extension_service.get_extension_history(current_user.id)


@router.get("/", response_model=List[AdminExtensionEntry])
async def read_extensions(
    status: Optional[ExtensionStatus] = Query(None),
    current_user: User = Depends(require_admin),
):
    return await extension_service.get_all_extensions(status)


@router.post("/", response_model=ExtensionResult, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/hour")
async def request_extension(
    request: Request,
    extension_in: RentalExtension.Request = Body(...),
    current_user: User = Depends(require_user),
):
    logger.info(f"User '{current_user.username}' requesting extension of rental '{extension_in.rental_id}' to {extension_in.new_end_date}.")
    return await extension_service.request_extension(
        parse_object_id(extension_in.rental_id, "rental ID"), current_user.id, extension_in.new_end_date
    )


@router.post("/admin", response_model=ExtensionResult, status_code=status.HTTP_201_CREATED)
@limiter.limit("60/minute")
async def create_admin_extension(
    request: Request,
    rental_id: str = Form(...),
    new_end_date: date = Form(...),
    notes: Optional[str] = Form(None),
    receipt: Optional[UploadFile] = File(None),
    current_user: User = Depends(require_admin),
):
    """Admin extends a delivered rental; an optional receipt becomes the extension's payment proof."""
    return await extension_service.create_admin_extension(
        parse_object_id(rental_id, "rental ID"),
        current_user.id,
        new_end_date,
        notes=notes,
        receipt=await read_upload(receipt),
    )


@router.get("/{extension_id}", response_model=RentalExtension.Response)
async def read_extension(extension_id: str = Path(...), current_user: User = Depends(get_current_active_user)):
    extension = await extension_service.get_extension(parse_object_id(extension_id, "extension ID"))
    if current_user.role != UserRole.ADMIN:
        # Owners see extensions of their own rentals
        await rental_service.get_rental_for(current_user, extension.rental_id)
    return to_response(extension, RentalExtension.Response)


@router.patch("/{extension_id}/approve", response_model=RentalExtension.Response)
@limiter.limit("60/minute")
async def approve_extension(request: Request, extension_id: str = Path(...), current_user: User = Depends(require_admin)):
    logger.info(f"Admin '{current_user.username}' approving extension '{extension_id}'.")
    extension = await extension_service.approve_extension(parse_object_id(extension_id, "extension ID"), current_user.id)
    return to_response(extension, RentalExtension.Response)


@router.patch("/{extension_id}/reject", response_model=RentalExtension.Response)
@limiter.limit("60/minute")
async def reject_extension(
    request: Request,
    extension_id: str = Path(...),
    reject_in: Optional[RentalExtension.Reject] = Body(None),
    current_user: User = Depends(require_admin),
):
    logger.info(f"Admin '{current_user.username}' rejecting extension '{extension_id}'.")
    extension = await extension_service.reject_extension(
        parse_object_id(extension_id, "extension ID"), current_user.id, reject_in.notes if reject_in else None
    )
    return to_response(extension, RentalExtension.Response)


@router.post("/{extension_id}/payment", response_model=Payment.Response)
@limiter.limit("30/minute")
async def attach_extension_payment(
    request: Request,
    extension_id: str = Path(...),
    receipt: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_active_user),
):
    """Retry creating (or update) the payment tied to an extension."""
    payment = await extension_service.attach_extension_payment(
        parse_object_id(extension_id, "extension ID"), current_user, receipt=await read_upload(receipt)
    )
    return to_response(payment, Payment.Response)
