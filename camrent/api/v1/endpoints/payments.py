# camrent/api/v1/endpoints/payments.py
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, File, Path, Query, Request, UploadFile
from fastapi import HTTPException

from camrent.core.rate_limiter import limiter
from camrent.core.security import get_current_active_user, require_admin
from camrent.core.storage import read_upload
from camrent.core.utils import parse_object_id, to_response
from camrent.models.enum import PaymentStatus
from camrent.models.payment import Payment
from camrent.models.user import User, UserRole
from camrent.services import payment_service, rental_service

router = APIRouter(tags=["Payments"])


@router.get("/", response_model=List[Payment.Response])
async def read_payments(
    rental_id: Optional[str] = Query(None),
    status: Optional[PaymentStatus] = Query(None),
    current_user: User = Depends(get_current_active_user),
):
    rental_oid = None
    if rental_id:
        rental_oid = parse_object_id(rental_id, "rental ID")
        await rental_service.get_rental_for(current_user, rental_oid)
    user_oid = None if current_user.role == UserRole.ADMIN else current_user.id
    payments = await payment_service.list_payments(rental_id=rental_oid, user_id=user_oid, status=status)
    return [to_response(p, Payment.Response) for p in payments]


@router.post("/{payment_id}/receipt", response_model=Payment.Response)
@limiter.limit("20/hour")
async def upload_receipt(
    request: Request,
    payment_id: str = Path(...),
    receipt: UploadFile = File(...),
    current_user: User = Depends(get_current_active_user),
):
    receipt_file = await read_upload(receipt)
    if receipt_file is None:
        raise HTTPException(status_code=400, detail="Receipt file is required.")
    payment = await payment_service.upload_payment_receipt(
        parse_object_id(payment_id, "payment ID"), current_user.id, receipt_file
    )
    return to_response(payment, Payment.Response)


@router.patch("/{payment_id}/verify", response_model=Payment.Response)
@limiter.limit("60/minute")
async def verify_payment(request: Request, payment_id: str = Path(...), current_user: User = Depends(require_admin)):
    payment = await payment_service.verify_payment(parse_object_id(payment_id, "payment ID"), current_user.id)
    return to_response(payment, Payment.Response)


@router.patch("/{payment_id}/reject", response_model=Payment.Response)
@limiter.limit("60/minute")
async def reject_payment(
    request: Request,
    payment_id: str = Path(...),
    reject_in: Payment.Reject = Body(...),
    current_user: User = Depends(require_admin),
):
    payment = await payment_service.reject_payment(
        parse_object_id(payment_id, "payment ID"), current_user.id, reject_in.reason
    )
    return to_response(payment, Payment.Response)
