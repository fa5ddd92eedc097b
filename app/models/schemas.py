"""
Request validation: booking submissions, identity forms and partial-update
payloads. Nothing here performs I/O; known slugs and limits come from
app.core.constants.
"""

import datetime
import re
from typing import Annotated, Optional, List, Dict, Any

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_core import PydanticCustomError

from app.core.constants import (
    CITY_SLUGS,
    SERVICE_SLUGS,
    MIN_DURATION_HOURS,
    MAX_DURATION_HOURS,
    POSTCODE_LENGTH,
    PASSWORD_MIN_LENGTH,
    PASSWORD_MAX_LENGTH,
)
from app.models.db_models import BookingStatus, UserRole


class RequestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class PartialUpdate(RequestModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True, extra="forbid")

    def changes(self) -> Dict[str, Any]:
        """Only the keys the client actually sent, with column names."""
        return self.model_dump(exclude_unset=True, mode="json")


# --- Booking ---

class Address(BaseModel):
    # No config-level stripping: the postcode length counts every character
    model_config = ConfigDict(populate_by_name=True)

    street: str
    suburb: str
    postcode: str

    @field_validator("street")
    @classmethod
    def street_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise PydanticCustomError("street_required", "Street address is required")
        return v

    @field_validator("suburb")
    @classmethod
    def suburb_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise PydanticCustomError("suburb_required", "Suburb is required")
        return v

    @field_validator("postcode")
    @classmethod
    def postcode_length(cls, v: str) -> str:
        if len(v) != POSTCODE_LENGTH:
            raise PydanticCustomError("postcode_length", "Invalid postcode")
        return v

    def one_line(self) -> str:
        return f"{self.street}, {self.suburb} {self.postcode}"


class BookingRequest(RequestModel):
    service: str
    city: str
    date: datetime.date
    time: datetime.time
    duration: int = Field(ge=MIN_DURATION_HOURS, le=MAX_DURATION_HOURS)
    address: Address
    extras: Optional[List[str]] = None
    notes: Optional[str] = None

    @field_validator("service")
    @classmethod
    def known_service(cls, v: str) -> str:
        if v not in SERVICE_SLUGS:
            raise PydanticCustomError("unknown_service", "Please select a service")
        return v

    @field_validator("city")
    @classmethod
    def known_city(cls, v: str) -> str:
        if v not in CITY_SLUGS:
            raise PydanticCustomError("unknown_city", "Please select a city")
        return v

    def starts_at(self) -> datetime.datetime:
        return datetime.datetime.combine(self.date, self.time)


class BookingUpdate(PartialUpdate):
    cleaner_id: Optional[str] = Field(default=None, alias="cleanerId")
    date: Optional[datetime.datetime] = None
    duration: Optional[int] = Field(default=None, ge=MIN_DURATION_HOURS, le=MAX_DURATION_HOURS)
    address: Optional[str] = None
    notes: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class BookingStatusUpdate(RequestModel):
    status: BookingStatus


# --- Identity ---

_LOWER = re.compile(r"[a-z]")
_UPPER = re.compile(r"[A-Z]")
_DIGIT = re.compile(r"[0-9]")


def check_password(v: str) -> str:
    if len(v) < PASSWORD_MIN_LENGTH:
        raise PydanticCustomError("password_too_short", "Password must be at least 8 characters long")
    if len(v) > PASSWORD_MAX_LENGTH:
        raise PydanticCustomError("password_too_long", "Password must be at most 100 characters long")
    if not (_LOWER.search(v) and _UPPER.search(v) and _DIGIT.search(v)):
        raise PydanticCustomError(
            "password_strength",
            "Password must contain at least one uppercase letter, one lowercase letter, and one number",
        )
    return v


Password = Annotated[str, AfterValidator(check_password)]


class LoginRequest(RequestModel):
    email: EmailStr


class ResetPasswordRequest(RequestModel):
    email: EmailStr


class SignUpRequest(RequestModel):
    email: EmailStr
    password: Password


class UpdatePasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    password: Password
    confirm_password: str = Field(alias="confirmPassword")

    @model_validator(mode="wrap")
    @classmethod
    def passwords_match(cls, data: Any, handler):
        """
        Compares the raw pair, so a mismatch is reported on confirmPassword
        alongside any error the password itself has.
        """
        mismatch = (
            isinstance(data, dict)
            and "password" in data
            and ("confirmPassword" in data or "confirm_password" in data)
            and data["password"] != data.get("confirmPassword", data.get("confirm_password"))
        )
        mismatch_error = {
            "type": PydanticCustomError("password_mismatch", "Passwords don't match"),
            "loc": ("confirmPassword",),
            "input": data.get("confirmPassword", data.get("confirm_password")) if isinstance(data, dict) else None,
        }

        try:
            model = handler(data)
        except ValidationError as e:
            if not mismatch:
                raise
            line_errors = [
                {"type": PydanticCustomError(err["type"], err["msg"]), "loc": err["loc"], "input": err["input"]}
                for err in e.errors()
            ]
            raise ValidationError.from_exception_data(cls.__name__, line_errors + [mismatch_error])

        if mismatch:
            raise ValidationError.from_exception_data(cls.__name__, [mismatch_error])
        return model


# --- Partial updates ---

class UserUpdate(PartialUpdate):
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = None


class ProfileUpdate(PartialUpdate):
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postcode: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class CityUpdate(PartialUpdate):
    name: Optional[str] = None
    is_active: Optional[bool] = Field(default=None, alias="isActive")


class ServiceUpdate(PartialUpdate):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[str] = None
    features: Optional[List[str]] = None
    is_active: Optional[bool] = Field(default=None, alias="isActive")
