# camrent/services/camera_service.py
from typing import List, Optional

from beanie import PydanticObjectId
from loguru import logger
from pymongo.errors import DuplicateKeyError

from camrent.core.availability import find_overlapping_rentals
from camrent.core.errors import ConflictError, NotFoundError, ValidationError
from camrent.core.utils import DateLike, to_midnight, utcnow
from camrent.models.camera import Camera


async def get_camera(camera_id: PydanticObjectId) -> Camera:
    camera = await Camera.get(camera_id)
    if not camera:
        raise NotFoundError("Camera not found.")
    return camera


async def list_cameras(
    include_inactive: bool = False,
    name: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[Camera]:
    query = {} if include_inactive else {"is_active": True}
    if name:
        query["name"] = name
    return await Camera.find(query).sort([("name", 1), ("serial_number", 1)]).skip(skip).limit(limit).to_list()


async def create_camera(data: Camera.Create) -> Camera:
    if await Camera.find_one({"serial_number": data.serial_number}):
        raise ConflictError(f"Serial number '{data.serial_number}' already registered.")
    camera = Camera(**data.model_dump())
    try:
        await camera.insert()
    except DuplicateKeyError as e:
        raise ConflictError(f"Serial number '{data.serial_number}' already registered.") from e
    logger.info(f"Camera '{camera.name}' ({camera.serial_number}) added.")
    return camera


async def update_camera(camera_id: PydanticObjectId, data: Camera.Update) -> Camera:
    camera = await get_camera(camera_id)
    changes = data.model_dump(exclude_unset=True)
    if not changes:
        return camera
    for field, value in changes.items():
        setattr(camera, field, value)
    camera.updated_at = utcnow()
    await camera.save()
    logger.info(f"Camera {camera_id} updated: {sorted(changes)}")
    return camera


async def get_available_cameras(start_date: DateLike, end_date: DateLike) -> List[Camera]:
    """Active units with no confirmed or active rental overlapping [start, end]."""
    start = to_midnight(start_date)
    end = to_midnight(end_date)
    if end < start:
        raise ValidationError("End date cannot be before start date.")

    available = []
    for camera in await Camera.find({"is_active": True}).sort([("name", 1), ("serial_number", 1)]).to_list():
        if not await find_overlapping_rentals(camera.id, start, end):
            available.append(camera)
    return available
