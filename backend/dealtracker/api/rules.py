from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List

from dealtracker.api.deps import get_current_user
from dealtracker.database import get_db
from dealtracker.models import MonitoringRule, User
from dealtracker.schemas import RuleCreate, RuleResponse, RuleUpdate, ToggleRequest

router = APIRouter()


def _get_user_rule(db: Session, rule_id: int, user: User) -> MonitoringRule:
    rule = db.query(MonitoringRule).filter(
        MonitoringRule.id == rule_id,
        MonitoringRule.user_id == user.id,
    ).first()
    if not rule:
        raise HTTPException(status_code=404, detail="Rule not found")
    return rule


@router.get("", response_model=List[RuleResponse])
async def list_rules(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return db.query(MonitoringRule).filter(
        MonitoringRule.user_id == user.id
    ).order_by(MonitoringRule.created_at.desc(), MonitoringRule.id.desc()).all()


@router.post("", response_model=RuleResponse)
async def create_rule(
    rule: RuleCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    db_rule = MonitoringRule(**rule.model_dump(), user_id=user.id)
    db.add(db_rule)
    db.commit()
    db.refresh(db_rule)
    return db_rule


@router.get("/{rule_id}", response_model=RuleResponse)
async def get_rule(
    rule_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return _get_user_rule(db, rule_id, user)


@router.put("/{rule_id}", response_model=RuleResponse)
async def update_rule(
    rule_id: int,
    rule_update: RuleUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    rule = _get_user_rule(db, rule_id, user)

    update_data = rule_update.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(rule, field, value)

    db.commit()
    db.refresh(rule)
    return rule


@router.post("/{rule_id}/toggle", response_model=RuleResponse)
async def toggle_rule(
    rule_id: int,
    toggle: ToggleRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    rule = _get_user_rule(db, rule_id, user)
    rule.is_active = toggle.is_active
    db.commit()
    db.refresh(rule)
    return rule


@router.delete("/{rule_id}")
async def delete_rule(
    rule_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    rule = _get_user_rule(db, rule_id, user)
    db.delete(rule)
    db.commit()
    return {"success": True, "id": rule_id}
