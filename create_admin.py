# create_admin.py
import asyncio
import sys
from getpass import getpass
from typing import Optional

from camrent.core.config import DATABASE_NAME, MONGODB_URL
from camrent.core.security import get_password_hash
from camrent.db.database import init_db
from camrent.models.user import User, UserRole


async def create_admin_user(
    username: str,
    password: str,
    email: Optional[str] = None,
    full_name: Optional[str] = None,
    contact_number: Optional[str] = None,
) -> Optional[User]:
    """Insert an admin account. Returns None when the username is taken."""
    if await User.find_one(User.username == username):
        print(f"Error: Username '{username}' already exists.")
        return None

    admin_user = User(
        username=username,
        email=email,
        full_name=full_name,
        contact_number=contact_number,
        hashed_password=get_password_hash(password),
        role=UserRole.ADMIN,
        disabled=False,
    )
    await admin_user.insert()
    print(f"Admin user '{username}' created successfully!")
    return admin_user


def _prompt_password() -> str:
    while True:
        password = getpass("Enter admin password: ")
        if not password:
            print("Password cannot be empty.")
            continue
        if password == getpass("Confirm admin password: "):
            return password
        print("Passwords do not match. Please try again.")


async def create_initial_admin():
    print("--- Create Initial Admin User ---")
    if not MONGODB_URL or not DATABASE_NAME:
        print("Error: MONGODB_URL or DATABASE_NAME not found in environment variables/.env")
        sys.exit(1)

    await init_db()
    print(f"Connected to database: {DATABASE_NAME}")

    while True:
        username = input("Enter admin username: ").strip()
        if username:
            break
        print("Username cannot be empty.")

    if await User.find_one(User.username == username):
        print(f"Error: Username '{username}' already exists.")
        return

    password = _prompt_password()
    email = input("Enter admin email (optional, press Enter to skip): ").strip() or None
    full_name = input("Enter admin full name (optional, press Enter to skip): ").strip() or None
    contact_number = input("Enter admin contact number (optional, press Enter to skip): ").strip() or None

    await create_admin_user(username, password, email, full_name, contact_number)


if __name__ == "__main__":
    print("Starting admin creation script...")
    asyncio.run(create_initial_admin())
    print("Script finished.")
