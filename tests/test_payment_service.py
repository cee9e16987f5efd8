from datetime import datetime

import pytest
from beanie import PydanticObjectId
from pymongo.errors import DuplicateKeyError

from camrent.core.errors import AuthorizationError, ConflictError, ValidationError
from camrent.core.storage import ReceiptFile
from camrent.models.enum import PaymentStatus, PaymentType
from camrent.models.payment import Payment
from camrent.services import payment_service

PNG = ReceiptFile(filename="proof of payment.png", content_type="image/png", data=b"\x89PNG proof")


@pytest.fixture
async def rental(make_camera, make_rental, renter):
    return await make_rental(await make_camera(), renter, end=datetime(2024, 1, 10))


async def test_extension_payment_is_created_once(rental, renter, upload_dir):
    extension_id = PydanticObjectId()

    first = await payment_service.create_extension_payment(extension_id, rental.id, renter.id, 1000)
    second = await payment_service.create_extension_payment(extension_id, rental.id, renter.id, 1500, receipt=PNG)

    assert first.id == second.id
    assert second.amount == 1500
    assert second.payment_status == PaymentStatus.SUBMITTED
    assert second.payment_type == PaymentType.EXTENSION
    assert await Payment.find({"extension_id": extension_id}).count() == 1
    assert (upload_dir / second.receipt_path).exists()


async def test_one_extension_payment_per_extension(rental, renter):
    extension_id = PydanticObjectId()
    await payment_service.create_extension_payment(extension_id, rental.id, renter.id, 1000)

    duplicate = Payment(
        rental_id=rental.id, user_id=renter.id, extension_id=extension_id,
        payment_type=PaymentType.EXTENSION, amount=1000,
    )
    with pytest.raises(DuplicateKeyError):
        await duplicate.insert()

    # Rental payments carry no extension and never collide
    await payment_service.create_rental_payment(rental.id, renter.id, 3000)
    second = await payment_service.create_rental_payment(rental.id, renter.id, 3000)
    stored = await Payment.get_motor_collection().find_one({"_id": second.id})
    assert "extension_id" not in stored


async def test_concurrent_first_payment_reuses_winner(rental, renter, monkeypatch):
    extension_id = PydanticObjectId()
    winner = await payment_service.create_extension_payment(extension_id, rental.id, renter.id, 1000)

    real_find = payment_service._find_extension_payment
    calls = {"n": 0}

    async def stale_then_real(*args, **kwargs):
        calls["n"] += 1
        if calls["n"] == 1:
            return None
        return await real_find(*args, **kwargs)

    monkeypatch.setattr(payment_service, "_find_extension_payment", stale_then_real)

    payment = await payment_service.create_extension_payment(extension_id, rental.id, renter.id, 1200)

    assert payment.id == winner.id
    assert payment.amount == 1200
    assert await Payment.find({"extension_id": extension_id}).count() == 1


async def test_verified_extension_payment_is_left_alone(rental, renter, admin):
    extension_id = PydanticObjectId()
    payment = await payment_service.create_extension_payment(extension_id, rental.id, renter.id, 1000)
    await payment_service.verify_payment(payment.id, admin.id)

    again = await payment_service.create_extension_payment(extension_id, rental.id, renter.id, 9999)

    assert again.id == payment.id
    assert again.amount == 1000
    assert again.payment_status == PaymentStatus.VERIFIED


async def test_owner_uploads_receipt(rental, renter, upload_dir):
    payment = await payment_service.create_rental_payment(rental.id, renter.id, 3000)

    updated = await payment_service.upload_payment_receipt(payment.id, renter.id, PNG)

    assert updated.payment_status == PaymentStatus.SUBMITTED
    assert updated.submitted_at is not None
    assert updated.receipt_path.startswith(f"rentals/{rental.id}/")
    assert updated.receipt_path.endswith("proof_of_payment.png")


async def test_receipt_upload_checks_owner_and_type(rental, renter, make_user, upload_dir):
    payment = await payment_service.create_rental_payment(rental.id, renter.id, 3000)
    stranger = await make_user("stranger")

    with pytest.raises(AuthorizationError):
        await payment_service.upload_payment_receipt(payment.id, stranger.id, PNG)

    text = ReceiptFile(filename="notes.txt", content_type="text/plain", data=b"paid")
    with pytest.raises(ValidationError, match="Unsupported receipt type"):
        await payment_service.upload_payment_receipt(payment.id, renter.id, text)

    empty = ReceiptFile(filename="empty.png", content_type="image/png", data=b"")
    with pytest.raises(ValidationError, match="empty"):
        await payment_service.upload_payment_receipt(payment.id, renter.id, empty)


async def test_verify_then_reject_is_refused(rental, renter, admin):
    payment = await payment_service.create_rental_payment(rental.id, renter.id, 3000)

    verified = await payment_service.verify_payment(payment.id, admin.id)
    assert verified.verified_by == admin.id

    with pytest.raises(ConflictError):
        await payment_service.reject_payment(payment.id, admin.id, "Blurry receipt")
    with pytest.raises(ConflictError):
        await payment_service.verify_payment(payment.id, admin.id)


async def test_reject_records_reason(rental, renter, admin):
    payment = await payment_service.create_rental_payment(rental.id, renter.id, 3000)

    rejected = await payment_service.reject_payment(payment.id, admin.id, "Amount does not match")

    assert rejected.payment_status == PaymentStatus.REJECTED
    assert rejected.rejection_reason == "Amount does not match"


async def test_list_payments_filters(rental, renter, make_user):
    other = await make_user("other")
    await payment_service.create_rental_payment(rental.id, renter.id, 3000)
    await payment_service.create_rental_payment(rental.id, other.id, 100)

    mine = await payment_service.list_payments(user_id=renter.id)
    pending = await payment_service.list_payments(rental_id=rental.id, status=PaymentStatus.PENDING)

    assert [p.amount for p in mine] == [3000]
    assert len(pending) == 2
