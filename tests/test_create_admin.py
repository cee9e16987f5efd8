from camrent.core.security import verify_password
from camrent.models.user import User, UserRole
from create_admin import create_admin_user


async def test_creates_admin_with_hashed_password(db):
    admin = await create_admin_user("boss", "s3cret!", email="boss@example.com", contact_number="0917")

    stored = await User.get(admin.id)
    assert stored.role == UserRole.ADMIN
    assert stored.contact_number == "0917"
    assert verify_password("s3cret!", stored.hashed_password)


async def test_existing_username_is_refused(make_user):
    await make_user("boss")

    assert await create_admin_user("boss", "whatever") is None
    assert await User.find(User.username == "boss").count() == 1
