from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List

from dealtracker.api.deps import get_current_user
from dealtracker.database import get_db
from dealtracker.models import PushAlert, User
from dealtracker.schemas import AlertCreate, AlertResponse, AlertUpdate, ToggleRequest

router = APIRouter()


def _get_user_alert(db: Session, alert_id: int, user: User) -> PushAlert:
    alert = db.query(PushAlert).filter(PushAlert.id == alert_id).first()
    if not alert or alert.user_id != user.id:
        raise HTTPException(status_code=404, detail="Alert not found")
    return alert


@router.get("", response_model=List[AlertResponse])
async def list_alerts(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return db.query(PushAlert).filter(
        PushAlert.user_id == user.id
    ).order_by(PushAlert.created_at.desc(), PushAlert.id.desc()).all()


@router.post("", response_model=AlertResponse)
async def create_alert(
    alert: AlertCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    db_alert = PushAlert(**alert.model_dump(), user_id=user.id)
    db.add(db_alert)
    db.commit()
    db.refresh(db_alert)
    return db_alert


@router.put("/{alert_id}", response_model=AlertResponse)
async def update_alert(
    alert_id: int,
    alert_update: AlertUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    alert = _get_user_alert(db, alert_id, user)

    for field, value in alert_update.model_dump(exclude_unset=True).items():
        setattr(alert, field, value)

    db.commit()
    db.refresh(alert)
    return alert


@router.post("/{alert_id}/toggle")
async def toggle_alert(
    alert_id: int,
    toggle: ToggleRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    alert = _get_user_alert(db, alert_id, user)
    alert.is_active = toggle.is_active
    db.commit()
    return {"success": True}


@router.delete("/{alert_id}")
async def delete_alert(
    alert_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    alert = _get_user_alert(db, alert_id, user)
    db.delete(alert)
    db.commit()
    return {"success": True}
