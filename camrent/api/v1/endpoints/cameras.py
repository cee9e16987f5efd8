# camrent/api/v1/endpoints/cameras.py
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Path, Query, Request, status
from loguru import logger

from camrent.core.rate_limiter import limiter
from camrent.core.security import get_current_active_user, require_admin
from camrent.core.utils import parse_object_id, to_response
from camrent.models.camera import Camera
from camrent.models.user import User
from camrent.services import camera_service

router = APIRouter(tags=["Cameras"])


@router.get("/", response_model=List[Camera.Response])
async def read_cameras(
    name: Optional[str] = Query(None, description="Filter by model name"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
):
    cameras = await camera_service.list_cameras(name=name, skip=skip, limit=limit)
    return [to_response(c, Camera.Response) for c in cameras]


@router.get("/available", response_model=List[Camera.Response])
async def read_available_cameras(
    start_date: date = Query(...),
    end_date: date = Query(...),
    current_user: User = Depends(get_current_active_user),
):
    cameras = await camera_service.get_available_cameras(start_date, end_date)
    return [to_response(c, Camera.Response) for c in cameras]


@router.get("/{camera_id}", response_model=Camera.Response)
async def read_camera(
    camera_id: str = Path(...),
    current_user: User = Depends(get_current_active_user),
):
    camera = await camera_service.get_camera(parse_object_id(camera_id, "camera ID"))
    return to_response(camera, Camera.Response)


@router.post("/", response_model=Camera.Response, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
async def create_camera(
    request: Request,
    camera_in: Camera.Create = Body(...),
    current_user: User = Depends(require_admin),
):
    camera = await camera_service.create_camera(camera_in)
    logger.info(f"Camera {camera.serial_number} created by '{current_user.username}'.")
    return to_response(camera, Camera.Response)


@router.patch("/{camera_id}", response_model=Camera.Response)
@limiter.limit("30/minute")
async def update_camera(
    request: Request,
    camera_id: str = Path(...),
    camera_in: Camera.Update = Body(...),
    current_user: User = Depends(require_admin),
):
    camera = await camera_service.update_camera(parse_object_id(camera_id, "camera ID"), camera_in)
    return to_response(camera, Camera.Response)
