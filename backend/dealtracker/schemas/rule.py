from pydantic import BaseModel, EmailStr, Field, AnyHttpUrl, TypeAdapter, field_validator
from datetime import datetime
from typing import Optional

from dealtracker.models.monitoring_rule import DealType, NotificationType

_http_url = TypeAdapter(AnyHttpUrl)


def _normalize_location(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip().upper()
    return value or None


def _normalize_webhook(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    _http_url.validate_python(value)
    return value


def _reject_null(value):
    # Partial updates may omit these columns but never clear them
    if value is None:
        raise ValueError("field cannot be null")
    return value


class RuleBase(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    type: DealType
    origin: Optional[str] = None
    destination: Optional[str] = None
    departure_date: Optional[datetime] = None
    return_date: Optional[datetime] = None
    min_discount: int = Field(default=50, ge=0, le=100)
    notification_type: NotificationType = NotificationType.EMAIL
    notification_email: Optional[EmailStr] = None
    notification_webhook: Optional[str] = None
    is_active: bool = True

    normalize_locations = field_validator("origin", "destination")(_normalize_location)
    normalize_webhook = field_validator("notification_webhook")(_normalize_webhook)


class RuleCreate(RuleBase):
    pass


class RuleUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    type: Optional[DealType] = None
    origin: Optional[str] = None
    destination: Optional[str] = None
    departure_date: Optional[datetime] = None
    return_date: Optional[datetime] = None
    min_discount: Optional[int] = Field(default=None, ge=0, le=100)
    notification_type: Optional[NotificationType] = None
    notification_email: Optional[EmailStr] = None
    notification_webhook: Optional[str] = None
    is_active: Optional[bool] = None

    normalize_locations = field_validator("origin", "destination")(_normalize_location)
    normalize_webhook = field_validator("notification_webhook")(_normalize_webhook)
    reject_nulls = field_validator(
        "name", "type", "min_discount", "notification_type", "is_active"
    )(_reject_null)


class ToggleRequest(BaseModel):
    is_active: bool


class RuleResponse(RuleBase):
    id: int
    user_id: int
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
