from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Enum as SQLEnum
from dealtracker.database import Base
import enum


class DealType(str, enum.Enum):
    FLIGHT = "flight"
    CRUISE = "cruise"


class NotificationType(str, enum.Enum):
    EMAIL = "email"
    WEBHOOK = "webhook"
    BOTH = "both"


class MonitoringRule(Base):
    """
    User-defined search criteria evaluated by the daily deals job.

    A rule describes what to search (route and dates), how good a deal has
    to be (min_discount, a percentage) and where to send matches.
    """
    __tablename__ = "monitoring_rules"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    type = Column(SQLEnum(DealType), nullable=False)

    # Route (IATA codes for flights, ports for cruises)
    origin = Column(String(100), nullable=True)
    destination = Column(String(100), nullable=True)
    departure_date = Column(DateTime, nullable=True)
    return_date = Column(DateTime, nullable=True)

    min_discount = Column(Integer, default=50, nullable=False)

    notification_type = Column(SQLEnum(NotificationType), default=NotificationType.EMAIL, nullable=False)
    notification_email = Column(String(320), nullable=True)
    notification_webhook = Column(Text, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    @property
    def wants_email(self) -> bool:
        return self.notification_type in (NotificationType.EMAIL, NotificationType.BOTH)

    @property
    def wants_webhook(self) -> bool:
        return self.notification_type in (NotificationType.WEBHOOK, NotificationType.BOTH)
