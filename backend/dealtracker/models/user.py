from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, DateTime, Enum as SQLEnum
from dealtracker.database import Base
import enum


class UserRole(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"


class User(Base):
    """Account row; identity itself comes from the upstream auth proxy."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    open_id = Column(String(64), nullable=False, unique=True)
    name = Column(Text, nullable=True)
    email = Column(String(320), nullable=True)
    role = Column(SQLEnum(UserRole), default=UserRole.USER, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    last_signed_in = Column(DateTime, default=datetime.utcnow, nullable=False)

    @classmethod
    def get_or_create(cls, db, open_id: str):
        user = db.query(cls).filter(cls.open_id == open_id).first()
        if not user:
            user = cls(open_id=open_id)
            db.add(user)
            db.commit()
            db.refresh(user)
        return user
