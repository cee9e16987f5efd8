import os
import tempfile
from datetime import datetime

import pytest

os.environ.setdefault("SECRET_KEY", "test-secret-key-" + "x" * 32)
os.environ.setdefault("MONGODB_URL", "mongodb://localhost:27017")
os.environ.setdefault("DATABASE_NAME", "camrent_test")
os.environ.setdefault("LOG_FILE_PATH", "")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("MONGODB_TRANSACTIONS", "false")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="camrent-uploads-"))

from mongomock_motor import AsyncMongoMockClient

from camrent.core import config
from camrent.core.security import create_access_token, get_password_hash
from camrent.db.database import init_db
from camrent.models.camera import Camera
from camrent.models.enum import RentalStatus, ShippingStatus
from camrent.models.rental import Rental
from camrent.models.user import User, UserRole


@pytest.fixture
async def db():
    client = AsyncMongoMockClient()
    database = client[config.DATABASE_NAME]
    await init_db(database)
    yield database


@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "UPLOAD_DIR", tmp_path)
    return tmp_path


@pytest.fixture
def make_user(db):
    async def _make_user(username="renter", role=UserRole.USER, password="secret123", **kwargs):
        user = User(
            username=username,
            hashed_password=get_password_hash(password),
            role=role,
            full_name=kwargs.pop("full_name", username.title()),
            **kwargs,
        )
        await user.insert()
        return user
    return _make_user


@pytest.fixture
def make_camera(db):
    counter = {"n": 0}

    async def _make_camera(name="Canon EOS R6", price_per_day=500.0, serial_number=None, **kwargs):
        counter["n"] += 1
        camera = Camera(
            name=name,
            serial_number=serial_number or f"SN-{counter['n']:04d}",
            price_per_day=price_per_day,
            **kwargs,
        )
        await camera.insert()
        return camera
    return _make_camera


@pytest.fixture
def make_rental(db):
    async def _make_rental(
        camera,
        user=None,
        start=datetime(2024, 1, 5),
        end=datetime(2024, 1, 10),
        rental_status=RentalStatus.ACTIVE,
        shipping_status=ShippingStatus.DELIVERED,
    ):
        days = (end - start).days + 1
        rental = Rental(
            camera_id=camera.id,
            user_id=user.id if user else None,
            start_date=start,
            end_date=end,
            rental_status=rental_status,
            shipping_status=shipping_status,
            price_per_day=camera.price_per_day,
            total_price=days * camera.price_per_day,
        )
        await rental.insert()
        return rental
    return _make_rental


@pytest.fixture
async def admin(make_user):
    return await make_user("admin", role=UserRole.ADMIN)


@pytest.fixture
async def renter(make_user):
    return await make_user("renter")


def auth_headers(user):
    token = create_access_token({"sub": user.username, "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(name="auth_headers")
def auth_headers_fixture():
    return auth_headers
