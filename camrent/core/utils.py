# camrent/core/utils.py
import math
from datetime import date, datetime, timedelta, timezone
from typing import Union

from beanie import PydanticObjectId
from bson import ObjectId

from camrent.core.errors import ValidationError

DateLike = Union[date, datetime, str]

ONE_DAY = timedelta(days=1)


def utcnow() -> datetime:
    """Naive UTC timestamp, the form MongoDB hands back."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_midnight(value: DateLike) -> datetime:
    """
    Normalize a date, datetime or ISO string to a naive datetime at 00:00.
    Aware datetimes are converted to UTC first.
    """
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError as e:
            raise ValidationError(f"Invalid date: {value!r}") from e
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value.replace(hour=0, minute=0, second=0, microsecond=0)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    raise ValidationError(f"Unsupported date value: {value!r}")


def today() -> datetime:
    return to_midnight(utcnow())


def calculate_extension_days(current_end: DateLike, new_end: DateLike) -> int:
    """Whole calendar days between the current and requested end dates."""
    delta = to_midnight(new_end) - to_midnight(current_end)
    return math.ceil(delta / ONE_DAY)


def calculate_rental_days(start: DateLike, end: DateLike) -> int:
    """Inclusive day count: a rental starting and ending the same day is one day."""
    delta = to_midnight(end) - to_midnight(start)
    if delta < timedelta(0):
        raise ValidationError("End date cannot be before start date.")
    return delta.days + 1


def parse_object_id(value: Union[str, ObjectId], label: str = "ID") -> PydanticObjectId:
    if isinstance(value, ObjectId):
        return PydanticObjectId(value)
    if not value or not ObjectId.is_valid(value):
        raise ValidationError(f"Invalid {label} format.")
    return PydanticObjectId(value)


def to_response(doc, schema):
    """Dump a Beanie document to JSON-safe data and validate it into a response schema."""
    data = doc.model_dump(mode="json")
    data["id"] = str(doc.id)
    return schema.model_validate(data)
