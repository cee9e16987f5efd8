# camrent/services/payment_service.py
from typing import List, Optional

from beanie import PydanticObjectId
from loguru import logger
from pymongo.errors import DuplicateKeyError

from camrent.core.errors import AuthorizationError, ConflictError, NotFoundError
from camrent.core.storage import ReceiptFile, save_receipt
from camrent.core.utils import utcnow
from camrent.models.enum import PaymentStatus, PaymentType
from camrent.models.payment import Payment


async def get_payment(payment_id: PydanticObjectId) -> Payment:
    payment = await Payment.get(payment_id)
    if not payment:
        raise NotFoundError("Payment not found.")
    return payment


async def create_rental_payment(rental_id, user_id, amount: float, session=None) -> Payment:
    """Primary payment row for a new rental; the receipt comes later."""
    payment = Payment(
        rental_id=rental_id,
        user_id=user_id,
        payment_type=PaymentType.RENTAL,
        amount=amount,
    )
    await payment.insert(session=session)
    return payment


async def _find_extension_payment(extension_id: PydanticObjectId, session=None) -> Optional[Payment]:
    return await Payment.find_one(
        {"extension_id": extension_id, "payment_type": PaymentType.EXTENSION.value},
        session=session,
    )


async def _refresh_extension_payment(
    existing: Payment, amount: float, receipt_path: Optional[str], session=None
) -> Payment:
    if existing.payment_status == PaymentStatus.VERIFIED:
        logger.info(f"Extension {existing.extension_id} payment {existing.id} already verified; leaving it as is.")
        return existing
    now = utcnow()
    existing.amount = amount
    if receipt_path:
        existing.receipt_path = receipt_path
        existing.payment_status = PaymentStatus.SUBMITTED
        existing.submitted_at = now
        existing.rejection_reason = None
    existing.updated_at = now
    await existing.save(session=session)
    logger.info(f"Reused payment {existing.id} for extension {existing.extension_id}.")
    return existing


async def create_extension_payment(
    extension_id: PydanticObjectId,
    rental_id: PydanticObjectId,
    user_id: Optional[PydanticObjectId],
    amount: float,
    receipt: Optional[ReceiptFile] = None,
    session=None,
) -> Payment:
    """
    Create the payment that tracks an extension's additional cost.

    Keyed by extension_id: a second call for the same extension updates the
    existing payment (amount, receipt) instead of inserting another one, so
    the step can be retried after a partial failure. The unique index on
    extension payments settles two concurrent first calls.
    """
    receipt_path = None
    if receipt is not None:
        receipt_path = save_receipt(receipt, folder=f"extensions/{extension_id}")

    existing = await _find_extension_payment(extension_id, session=session)
    if existing:
        return await _refresh_extension_payment(existing, amount, receipt_path, session=session)

    now = utcnow()
    payment = Payment(
        rental_id=rental_id,
        user_id=user_id,
        extension_id=extension_id,
        payment_type=PaymentType.EXTENSION,
        amount=amount,
        payment_status=PaymentStatus.SUBMITTED if receipt_path else PaymentStatus.PENDING,
        receipt_path=receipt_path,
        submitted_at=now if receipt_path else None,
    )
    try:
        await payment.insert(session=session)
    except DuplicateKeyError:
        logger.warning(f"Extension {extension_id} payment was created concurrently; updating that one.")
        existing = await _find_extension_payment(extension_id, session=session)
        return await _refresh_extension_payment(existing, amount, receipt_path, session=session)
    logger.info(f"Created extension payment {payment.id} for extension {extension_id}: amount={amount}")
    return payment


async def list_payments(
    rental_id: Optional[PydanticObjectId] = None,
    extension_ids: Optional[List[PydanticObjectId]] = None,
    user_id: Optional[PydanticObjectId] = None,
    status: Optional[PaymentStatus] = None,
) -> List[Payment]:
    query = {}
    if rental_id is not None:
        query["rental_id"] = rental_id
    if extension_ids is not None:
        query["extension_id"] = {"$in": extension_ids}
        query["payment_type"] = PaymentType.EXTENSION.value
    if user_id is not None:
        query["user_id"] = user_id
    if status is not None:
        query["payment_status"] = status.value
    return await Payment.find(query).sort("-created_at").to_list()


async def upload_payment_receipt(payment_id: PydanticObjectId, user_id: PydanticObjectId, receipt: ReceiptFile) -> Payment:
    """Owner attaches (or replaces) the proof of payment."""
    payment = await get_payment(payment_id)
    if payment.user_id != user_id:
        raise AuthorizationError("Unauthorized.")
    if payment.payment_status == PaymentStatus.VERIFIED:
        raise ConflictError("Payment is already verified.")

    folder = f"extensions/{payment.extension_id}" if payment.extension_id else f"rentals/{payment.rental_id}"
    now = utcnow()
    payment.receipt_path = save_receipt(receipt, folder=folder)
    payment.payment_status = PaymentStatus.SUBMITTED
    payment.submitted_at = now
    payment.rejection_reason = None
    payment.updated_at = now
    await payment.save()
    return payment


async def verify_payment(payment_id: PydanticObjectId, admin_id: PydanticObjectId) -> Payment:
    payment = await get_payment(payment_id)
    if payment.payment_status == PaymentStatus.VERIFIED:
        raise ConflictError("Payment is already verified.")
    now = utcnow()
    payment.payment_status = PaymentStatus.VERIFIED
    payment.verified_at = now
    payment.verified_by = admin_id
    payment.rejection_reason = None
    payment.updated_at = now
    await payment.save()
    logger.info(f"Payment {payment_id} verified by admin {admin_id}.")
    return payment


async def reject_payment(payment_id: PydanticObjectId, admin_id: PydanticObjectId, reason: str) -> Payment:
    payment = await get_payment(payment_id)
    if payment.payment_status == PaymentStatus.VERIFIED:
        raise ConflictError("Verified payments cannot be rejected.")
    now = utcnow()
    payment.payment_status = PaymentStatus.REJECTED
    payment.rejection_reason = reason
    payment.rejected_at = now
    payment.updated_at = now
    await payment.save()
    logger.info(f"Payment {payment_id} rejected by admin {admin_id}: {reason}")
    return payment
