"""
Input rules for accounts and listings.

Each request shape is a pydantic model. The ``validate_*`` helpers feed loosely typed input
(form fields, JSON values) through the model and convert every pydantic error into one
``ValidationError`` naming each offending field by its wire name.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Mapping, Optional, Sequence, Tuple, Type, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticCustomError

from .errors import ValidationError
from .ports.media import ImageUpload

Year = Literal["FE", "SE", "TE", "BE"]
Branch = Literal["CS", "IT", "ENTC", "AIDS", "ECE"]
Category = Literal[
    "Books",
    "Electronics",
    "Clothing",
    "Sports",
    "Furniture",
    "Stationery",
    "Accessories",
    "Other",
]
Condition = Literal["New", "Like New", "Good", "Fair", "Poor"]

INSTITUTIONAL_ID_PATTERN = r"^[A-Z]{1,2}2K[0-9]{6}$"
CONTACT_NUMBER_PATTERN = r"^[0-9]{10}$"
OTP_PATTERN = r"^[0-9]{6}$"

MIN_PASSWORD_LENGTH = 6
# bcrypt only hashes the first 72 bytes and rejects longer input.
MAX_PASSWORD_BYTES = 72
MAX_IMAGES_PER_REQUEST = 5
MAX_IMAGE_BYTES = 5 * 1024 * 1024

_FIELD_MESSAGES = {
    "name": "Name must be at least 2 characters",
    "email": "Please enter a valid email",
    "password": "Password must be at least 6 characters",
    "phone": "Please enter a valid 10-digit phone number",
    "whatsapp": "Please enter a valid 10-digit WhatsApp number",
    "year": "Year must be one of FE, SE, TE, BE",
    "branch": "Branch must be one of CS, IT, ENTC, AIDS, ECE",
    "institutionalId": "Please enter a valid ID card number (e.g., E2K221133)",
    "otp": "OTP must be 6 digits",
    "title": "Title must be 3-100 characters",
    "description": "Description must be 10-1000 characters",
    "price": "Price must be a number of 0 or more",
    "category": "Invalid category",
    "condition": "Invalid condition",
}
# Errors raised by our own validators carry their message verbatim.
_OWN_ERROR_PREFIX = "campus_"


# Accounts ---------------------------------------------------------------
class _EmailRequest(BaseModel):
    email: EmailStr

    @field_validator("email", mode="before")
    @classmethod
    def _trim_email(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("email")
    @classmethod
    def _lower_email(cls, value: str) -> str:
        return normalize_email(value)


class Registration(_EmailRequest):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(..., min_length=2)
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    phone: str = Field(..., pattern=CONTACT_NUMBER_PATTERN)
    whatsapp: str = Field(..., pattern=CONTACT_NUMBER_PATTERN)
    year: Year
    branch: Branch
    institutional_id: str = Field(..., alias="institutionalId", pattern=INSTITUTIONAL_ID_PATTERN)

    @field_validator("name", "phone", "whatsapp", mode="before")
    @classmethod
    def _trim(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("year", "branch", "institutional_id", mode="before")
    @classmethod
    def _upper(cls, value: Any) -> Any:
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("password")
    @classmethod
    def _fits_bcrypt(cls, value: str) -> str:
        if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise PydanticCustomError(
                "campus_password_too_long", "Password must be at most 72 bytes long"
            )
        return value


class LoginRequest(_EmailRequest):
    password: str = Field(..., min_length=1)


class VerificationRequest(_EmailRequest):
    otp: str = Field(..., pattern=OTP_PATTERN)

    @field_validator("otp", mode="before")
    @classmethod
    def _trim_otp(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


# Listings ---------------------------------------------------------------
class ListingDraft(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str = Field(..., min_length=3, max_length=100)
    description: str = Field(..., min_length=10, max_length=1000)
    price: float = Field(..., ge=0, allow_inf_nan=False)
    category: Category
    condition: Condition
    tags: List[str] = Field(default_factory=list)

    @field_validator("title", "description", "price", "category", "condition", mode="before")
    @classmethod
    def _trim(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("tags", mode="before")
    @classmethod
    def _split_tags(cls, value: Any) -> List[str]:
        return parse_tags(value)


class ListingChanges(ListingDraft):
    """Fields supplied on an update; ``None`` means the field was not sent."""

    title: Optional[str] = Field(default=None, min_length=3, max_length=100)
    description: Optional[str] = Field(default=None, min_length=10, max_length=1000)
    price: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    category: Optional[Category] = None
    condition: Optional[Condition] = None
    tags: Optional[List[str]] = None

    @field_validator("tags", mode="before")
    @classmethod
    def _split_tags(cls, value: Any) -> Optional[List[str]]:
        return None if value is None else parse_tags(value)

    def as_updates(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


_Model = TypeVar("_Model", bound=BaseModel)


def _parse(model: Type[_Model], raw: Mapping[str, Any]) -> _Model:
    try:
        return model.model_validate(dict(raw))
    except PydanticValidationError as exc:
        errors: Dict[str, str] = {}
        for error in exc.errors():
            field = str(error["loc"][0]) if error["loc"] else "body"
            if field in errors:
                continue
            if error["type"].startswith(_OWN_ERROR_PREFIX):
                errors[field] = error["msg"]
            else:
                errors[field] = _FIELD_MESSAGES.get(field, error["msg"])
        raise ValidationError(errors) from exc


def validate_registration(raw: Mapping[str, Any]) -> Registration:
    return _parse(Registration, raw)


def validate_login(raw: Mapping[str, Any]) -> Tuple[str, str]:
    request = _parse(LoginRequest, raw)
    return request.email, request.password


def validate_verification(raw: Mapping[str, Any]) -> Tuple[str, str]:
    request = _parse(VerificationRequest, raw)
    return request.email, request.otp


def validate_email_only(raw: Mapping[str, Any]) -> str:
    return _parse(_EmailRequest, raw).email


def normalize_email(value: str) -> str:
    return value.strip().lower()


def validate_listing(raw: Mapping[str, Any]) -> ListingDraft:
    return _parse(ListingDraft, raw)


def validate_listing_changes(raw: Mapping[str, Any]) -> ListingChanges:
    return _parse(ListingChanges, raw)


def validate_images(images: Sequence[ImageUpload]) -> None:
    message = None
    if len(images) > MAX_IMAGES_PER_REQUEST:
        message = f"At most {MAX_IMAGES_PER_REQUEST} images can be uploaded at once"
    elif any(not (image.content_type or "").startswith("image/") for image in images):
        message = "Only image files are allowed"
    elif any(image.size > MAX_IMAGE_BYTES for image in images):
        message = "Each image must be 5MB or smaller"
    if message:
        raise ValidationError({"images": message})


def parse_tags(value: Any) -> List[str]:
    """Split a comma separated tag string into trimmed, non-empty tags."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        parts = [str(part) for part in value]
    else:
        parts = str(value).split(",")
    return [part.strip() for part in parts if part.strip()]
