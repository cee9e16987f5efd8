# camrent/models/user.py
from typing import Optional
from enum import Enum
from datetime import datetime

from beanie import Document
from pydantic import BaseModel, Field, EmailStr
from pymongo import IndexModel, ASCENDING

from camrent.core.utils import utcnow


class UserRole(str, Enum):
    ADMIN = "admin"
    USER = "user"


class User(Document):
    username: str
    email: Optional[EmailStr] = None
    full_name: Optional[str] = None
    contact_number: Optional[str] = None
    hashed_password: str
    disabled: bool = Field(default=False)
    role: UserRole = Field(default=UserRole.USER)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "users"
        indexes = [
            IndexModel([("username", ASCENDING)], name="username_unique_index", unique=True),
            IndexModel([("role", ASCENDING)], name="role_index"),
        ]

    # --- Pydantic Schemas ---
    class Response(BaseModel):
        id: str
        username: str
        email: Optional[EmailStr] = None
        full_name: Optional[str] = None
        contact_number: Optional[str] = None
        disabled: bool
        role: UserRole
        created_at: datetime

        class Config:
            from_attributes = True
            use_enum_values = True

    class Create(BaseModel):
        username: str = Field(..., min_length=3, max_length=50)
        email: Optional[EmailStr] = None
        full_name: Optional[str] = None
        contact_number: Optional[str] = None
        password: str = Field(..., min_length=6)


class CustomerSummary(BaseModel):
    """Short customer reference embedded in admin listings."""
    id: str
    username: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    contact_number: Optional[str] = None
