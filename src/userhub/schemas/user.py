"""Pydantic schemas for users.

Learn: Pydantic v2 models validate request/response data. Separate
"Create"/"Update" schemas (input) from "Read" schemas (output) for clean
APIs. UserRead has no password_hash or refresh_token field, so those can
never leak into a response.
"""

import re
import uuid
from datetime import datetime
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, EmailStr

from userhub.db.models import Role

# ASCII digits only; \d would also accept fullwidth and other Unicode digits.
_NAME_RE = re.compile(r"[a-zA-Z\s]+", re.ASCII)
_PHONE_RE = re.compile(r"[0-9]{10,15}")
_PINCODE_RE = re.compile(r"[0-9]{4,10}")
_DIGITS = frozenset("0123456789")


# ─── Field rules (shared by create and update) ──────────


def check_name(value: str) -> str:
    value = value.strip()
    if len(value) < 3:
        raise ValueError("Name must be at least 3 characters")
    if not _NAME_RE.fullmatch(value):
        raise ValueError("Name must contain only alphabets")
    return value


def check_phone(value: str) -> str:
    if not _PHONE_RE.fullmatch(value):
        raise ValueError("Phone must be 10-15 digits")
    return value


def check_password(value: str) -> str:
    if len(value) < 6:
        raise ValueError("Password must be at least 6 characters")
    if not _DIGITS.intersection(value):
        raise ValueError("Password must contain at least one number")
    return value


def check_pincode(value: str) -> str:
    if not _PINCODE_RE.fullmatch(value):
        raise ValueError("Pincode must be 4-10 digits")
    return value


def check_address(value: str) -> str:
    if len(value) > 150:
        raise ValueError("Address must not exceed 150 characters")
    return value


def normalize_email(value: str) -> str:
    return value.lower()


def not_blank(label: str):
    def check(value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError(f"{label} cannot be empty")
        return value

    return check


Name = Annotated[str, AfterValidator(check_name)]
Email = Annotated[EmailStr, AfterValidator(normalize_email)]
Phone = Annotated[str, AfterValidator(check_phone)]
Password = Annotated[str, AfterValidator(check_password)]
Pincode = Annotated[str, AfterValidator(check_pincode)]
Address = Annotated[str, AfterValidator(check_address)]
State = Annotated[str, AfterValidator(not_blank("State"))]
City = Annotated[str, AfterValidator(not_blank("City"))]
Country = Annotated[str, AfterValidator(not_blank("Country"))]


# ─── Create ─────────────────────────────────────────────


class UserCreate(BaseModel):
    """Registration payload (JSON or form fields)."""

    name: Name
    email: Email
    phone: Phone
    password: Password
    address: Address = ""
    state: State
    city: City
    country: Country
    pincode: Pincode

    def profile_fields(self) -> dict:
        """Everything except the password, ready for the store."""
        return self.model_dump(exclude={"password"})


# ─── Update ─────────────────────────────────────────────


class UserUpdate(BaseModel):
    """Partial update by an admin. Password and session are not editable here."""

    name: Optional[Name] = None
    email: Optional[Email] = None
    phone: Optional[Phone] = None
    address: Optional[Address] = None
    state: Optional[State] = None
    city: Optional[City] = None
    country: Optional[Country] = None
    pincode: Optional[Pincode] = None
    role: Optional[Role] = None

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True, exclude_none=True)


# ─── Read ───────────────────────────────────────────────


class UserRead(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    phone: str
    role: Role
    address: str
    state: str
    city: str
    country: str
    pincode: str
    profile_image: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int
