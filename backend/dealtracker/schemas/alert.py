from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional

from dealtracker.models.push_alert import AlertDealType
from dealtracker.schemas.rule import _normalize_location, _reject_null


class AlertBase(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    type: AlertDealType = AlertDealType.BOTH
    origin: Optional[str] = None
    destination: Optional[str] = None
    min_discount: int = Field(default=50, ge=0, le=100)
    max_price: Optional[float] = Field(default=None, ge=0)
    is_active: bool = True

    normalize_locations = field_validator("origin", "destination")(_normalize_location)


class AlertCreate(AlertBase):
    pass


class AlertUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    type: Optional[AlertDealType] = None
    origin: Optional[str] = None
    destination: Optional[str] = None
    min_discount: Optional[int] = Field(default=None, ge=0, le=100)
    max_price: Optional[float] = Field(default=None, ge=0)
    is_active: Optional[bool] = None

    normalize_locations = field_validator("origin", "destination")(_normalize_location)
    reject_nulls = field_validator("name", "type", "min_discount", "is_active")(_reject_null)


class AlertResponse(AlertBase):
    id: int
    user_id: int
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PushSubscriptionKeys(BaseModel):
    p256dh: str
    auth: str


class PushSubscriptionCreate(BaseModel):
    """PushSubscription.toJSON() as sent by the browser."""
    endpoint: str = Field(min_length=1)
    keys: PushSubscriptionKeys


class PushSubscriptionDelete(BaseModel):
    endpoint: str
