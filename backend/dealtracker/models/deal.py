from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, Numeric, JSON, ForeignKey, Enum as SQLEnum
from dealtracker.database import Base
from dealtracker.models.monitoring_rule import DealType


class DealRecord(Base):
    """A deal found for a monitoring rule (deals history)."""
    __tablename__ = "deals_history"

    id = Column(Integer, primary_key=True, index=True)
    rule_id = Column(Integer, ForeignKey("monitoring_rules.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    type = Column(SQLEnum(DealType), nullable=False)

    title = Column(String(500), nullable=False)
    origin = Column(String(100), nullable=True)
    destination = Column(String(100), nullable=True)
    departure_date = Column(DateTime, nullable=True)
    return_date = Column(DateTime, nullable=True)

    original_price = Column(Numeric(10, 2), nullable=False)
    current_price = Column(Numeric(10, 2), nullable=False)
    discount_percentage = Column(Integer, nullable=False)
    currency = Column(String(10), default="USD", nullable=False)

    offer_url = Column(Text, nullable=False)
    provider = Column(String(100), nullable=True)
    details = Column(JSON, nullable=True)  # raw offer from the source API

    is_valid = Column(Boolean, default=True, nullable=False)
    validated_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    notified_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
