"""
Pydantic models for user accounts.

Defines schemas for registration, login, profile changes, the admin
user directory and reading users.  No read model carries the password
hash.  E‑mail addresses are normalised to lower case and phones must
be 10‑digit Indian mobile numbers.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import EmailStr, Field, field_validator

from .common import ApiModel

PHONE_PATTERN = r"^[6-9]\d{9}$"


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


def _strip(value):
    return value.strip() if isinstance(value, str) else value


def _lower_email(value):
    return value.strip().lower() if isinstance(value, str) else value


class UserRegister(ApiModel):
    name: str = Field(..., min_length=2, max_length=50, examples=["Asha Verma"])
    email: EmailStr = Field(..., examples=["asha@example.com"])
    phone: str = Field(..., pattern=PHONE_PATTERN, examples=["9876543210"])
    password: str = Field(..., min_length=6)

    @field_validator("name", "phone", mode="before")
    @classmethod
    def strip_text(cls, value):
        return _strip(value)

    @field_validator("email", mode="before")
    @classmethod
    def normalise_email(cls, value):
        return _lower_email(value)


class UserLogin(ApiModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def normalise_email(cls, value):
        return _lower_email(value)


class ProfileUpdate(ApiModel):
    """Fields a user may change on their own profile."""

    name: Optional[str] = Field(None, min_length=2, max_length=50)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)

    @field_validator("name", "phone", mode="before")
    @classmethod
    def strip_text(cls, value):
        return _strip(value)


class PasswordChange(ApiModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6)


class UserAdminUpdate(ApiModel):
    """Fields an administrator may change on any account.

    Unknown keys (``password``, ``lastLogin``...) are ignored, so
    clients cannot mass‑assign protected columns.
    """

    name: Optional[str] = Field(None, min_length=2, max_length=50)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None

    @field_validator("name", "phone", mode="before")
    @classmethod
    def strip_text(cls, value):
        return _strip(value)

    @field_validator("email", mode="before")
    @classmethod
    def normalise_email(cls, value):
        return _lower_email(value)


class UserRead(ApiModel):
    """Public representation of a user; never includes the password."""

    id: int
    name: str
    email: str
    phone: str
    role: UserRole
    is_active: bool = True
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
