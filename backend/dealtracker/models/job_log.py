from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, DateTime, Enum as SQLEnum
from dealtracker.database import Base
import enum


class JobStatus(str, enum.Enum):
    SUCCESS = "success"
    ERROR = "error"
    RUNNING = "running"


class JobLog(Base):
    """Audit row for one scheduled (or manual) job execution."""
    __tablename__ = "job_logs"

    id = Column(Integer, primary_key=True, index=True)
    job_type = Column(String(100), nullable=False)
    status = Column(SQLEnum(JobStatus), nullable=False)

    rules_processed = Column(Integer, default=0, nullable=False)
    deals_found = Column(Integer, default=0, nullable=False)
    notifications_sent = Column(Integer, default=0, nullable=False)

    error_message = Column(Text, nullable=True)
    execution_time = Column(Integer, nullable=True)  # milliseconds

    started_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)
