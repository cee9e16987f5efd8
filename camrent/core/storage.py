# camrent/core/storage.py
import re
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from fastapi import UploadFile
from loguru import logger

from camrent.core import config
from camrent.core.errors import ValidationError

_SAFE_NAME = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass
class ReceiptFile:
    """A payment proof already read into memory."""
    filename: str
    content_type: str
    data: bytes


async def read_upload(upload: Optional[UploadFile]) -> Optional[ReceiptFile]:
    if upload is None or not upload.filename:
        return None
    data = await upload.read()
    return ReceiptFile(
        filename=upload.filename,
        content_type=upload.content_type or "application/octet-stream",
        data=data,
    )


def validate_receipt(receipt: ReceiptFile) -> None:
    if receipt.content_type not in config.ALLOWED_RECEIPT_TYPES:
        raise ValidationError(f"Unsupported receipt type '{receipt.content_type}'.")
    if not receipt.data:
        raise ValidationError("Receipt file is empty.")
    if len(receipt.data) > config.MAX_RECEIPT_BYTES:
        raise ValidationError(f"Receipt exceeds {config.MAX_RECEIPT_BYTES} bytes.")


def save_receipt(receipt: ReceiptFile, folder: str) -> str:
    """Write the receipt under UPLOAD_DIR/folder and return its relative path."""
    validate_receipt(receipt)
    safe_name = _SAFE_NAME.sub("_", Path(receipt.filename).name) or "receipt"
    relative = Path(folder) / f"{uuid.uuid4().hex}_{safe_name}"
    target = Path(config.UPLOAD_DIR) / relative
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(receipt.data)
    logger.info(f"Stored receipt {relative} ({len(receipt.data)} bytes)")
    return relative.as_posix()
