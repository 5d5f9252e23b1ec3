from dealtracker.schemas.rule import RuleCreate, RuleUpdate, RuleResponse, ToggleRequest
from dealtracker.schemas.alert import (
    AlertCreate,
    AlertUpdate,
    AlertResponse,
    PushSubscriptionCreate,
    PushSubscriptionDelete,
)
from dealtracker.schemas.deal import DealResponse, JobLogResponse, JobRunResponse

__all__ = [
    "RuleCreate",
    "RuleUpdate",
    "RuleResponse",
    "ToggleRequest",
    "AlertCreate",
    "AlertUpdate",
    "AlertResponse",
    "PushSubscriptionCreate",
    "PushSubscriptionDelete",
    "DealResponse",
    "JobLogResponse",
    "JobRunResponse",
]
