# SQLAlchemy models
from dealtracker.models.user import User, UserRole
from dealtracker.models.monitoring_rule import MonitoringRule, DealType, NotificationType
from dealtracker.models.deal import DealRecord
from dealtracker.models.job_log import JobLog, JobStatus
from dealtracker.models.push_alert import PushAlert, PushSubscription, AlertDealType

__all__ = [
    "User",
    "MonitoringRule",
    "DealRecord",
    "JobLog",
    "PushAlert",
    "PushSubscription",
    # Enums
    "UserRole",
    "DealType",
    "NotificationType",
    "JobStatus",
    "AlertDealType",
]
