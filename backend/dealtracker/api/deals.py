from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List

from dealtracker.api.deps import get_current_user
from dealtracker.database import get_db
from dealtracker.models import DealRecord, User
from dealtracker.schemas import DealResponse

router = APIRouter()


@router.get("", response_model=List[DealResponse])
async def list_deals(
    limit: int = Query(default=50, ge=1, le=500),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Deals found for the caller, newest first."""
    return db.query(DealRecord).filter(
        DealRecord.user_id == user.id
    ).order_by(DealRecord.created_at.desc(), DealRecord.id.desc()).limit(limit).all()


@router.get("/by-rule/{rule_id}", response_model=List[DealResponse])
async def list_deals_by_rule(
    rule_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return db.query(DealRecord).filter(
        DealRecord.rule_id == rule_id,
        DealRecord.user_id == user.id,
    ).order_by(DealRecord.created_at.desc(), DealRecord.id.desc()).all()
