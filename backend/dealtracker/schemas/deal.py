from pydantic import BaseModel
from datetime import datetime
from typing import Optional

from dealtracker.models.monitoring_rule import DealType
from dealtracker.models.job_log import JobStatus


class DealResponse(BaseModel):
    id: int
    rule_id: int
    user_id: int
    type: DealType
    title: str
    origin: Optional[str] = None
    destination: Optional[str] = None
    departure_date: Optional[datetime] = None
    return_date: Optional[datetime] = None
    original_price: float
    current_price: float
    discount_percentage: int
    currency: str
    offer_url: str
    provider: Optional[str] = None
    is_valid: bool
    validated_at: datetime
    notified_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class JobLogResponse(BaseModel):
    id: int
    job_type: str
    status: JobStatus
    rules_processed: int
    deals_found: int
    notifications_sent: int
    error_message: Optional[str] = None
    execution_time: Optional[int] = None
    started_at: datetime
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class JobRunResponse(BaseModel):
    success: bool
    rules_processed: int
    deals_found: int
    notifications_sent: int
    error: Optional[str] = None
