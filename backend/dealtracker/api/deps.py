from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from dealtracker.database import get_db
from dealtracker.models import User


def get_current_user(
    x_user_id: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the caller from the X-User-Id header set by the auth proxy."""
    open_id = (x_user_id or "").strip()
    if not open_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return User.get_or_create(db, open_id)
