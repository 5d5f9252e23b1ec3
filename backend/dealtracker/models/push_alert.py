from datetime import datetime

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Numeric, ForeignKey, Enum as SQLEnum
from dealtracker.database import Base
import enum


class AlertDealType(str, enum.Enum):
    FLIGHT = "flight"
    CRUISE = "cruise"
    BOTH = "both"


class PushAlert(Base):
    """
    Browser push criteria, independent of monitoring rules.

    Alerts are matched against every deal the job finds for the same user,
    regardless of which rule found it.
    """
    __tablename__ = "push_alerts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    type = Column(SQLEnum(AlertDealType), default=AlertDealType.BOTH, nullable=False)

    origin = Column(String(100), nullable=True)
    destination = Column(String(100), nullable=True)
    min_discount = Column(Integer, default=50, nullable=False)
    max_price = Column(Numeric(10, 2), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class PushSubscription(Base):
    """Web Push subscription (PushSubscription JSON from the browser)."""
    __tablename__ = "push_subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    endpoint = Column(String(1024), nullable=False, unique=True)
    p256dh = Column(String(255), nullable=False)
    auth = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def to_subscription_info(self) -> dict:
        return {
            "endpoint": self.endpoint,
            "keys": {"p256dh": self.p256dh, "auth": self.auth},
        }
