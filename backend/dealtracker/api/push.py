from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Dict, List

from dealtracker.api.deps import get_current_user
from dealtracker.config import get_settings
from dealtracker.database import get_db
from dealtracker.models import PushSubscription, User
from dealtracker.schemas import PushSubscriptionCreate, PushSubscriptionDelete
from dealtracker.services.push_alerts import get_notification_history

router = APIRouter()


@router.get("/vapid-key")
async def get_vapid_key() -> Dict:
    """Public VAPID key for PushManager.subscribe()."""
    public_key = get_settings().vapid_public_key
    return {"public_key": public_key or None, "enabled": bool(public_key)}


@router.post("/subscriptions")
async def save_subscription(
    payload: PushSubscriptionCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict:
    subscription = db.query(PushSubscription).filter(
        PushSubscription.endpoint == payload.endpoint
    ).first()
    if subscription is None:
        subscription = PushSubscription(endpoint=payload.endpoint)
        db.add(subscription)

    # An endpoint belongs to one browser; re-subscribing moves it to the caller
    subscription.user_id = user.id
    subscription.p256dh = payload.keys.p256dh
    subscription.auth = payload.keys.auth
    db.commit()
    db.refresh(subscription)
    return {"success": True, "id": subscription.id}


@router.delete("/subscriptions")
async def remove_subscription(
    payload: PushSubscriptionDelete,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict:
    removed = db.query(PushSubscription).filter(
        PushSubscription.endpoint == payload.endpoint,
        PushSubscription.user_id == user.id,
    ).delete(synchronize_session=False)
    db.commit()
    return {"success": True, "removed": removed}


@router.get("/notifications")
async def get_push_notifications(
    limit: int = Query(default=50, ge=1, le=100),
    user: User = Depends(get_current_user),
) -> List[Dict]:
    """Recent push notifications for the caller (polled by the dashboard)."""
    return get_notification_history().get_recent(user.id, limit=limit)


@router.delete("/notifications")
async def clear_push_notifications(user: User = Depends(get_current_user)) -> Dict[str, str]:
    get_notification_history().clear(user.id)
    return {"status": "cleared"}
