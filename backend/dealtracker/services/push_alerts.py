"""
Push alerts: a second, independent set of per-user criteria matched against
every deal the job finds.

Matches are kept in an in-memory per-user history (the dashboard polls it
while open) and, when VAPID keys are configured, delivered through Web Push
to the user's stored browser subscriptions.
"""
import asyncio
import json
import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional

from pywebpush import webpush, WebPushException
from sqlalchemy.orm import Session

from dealtracker.config import get_settings
from dealtracker.models import AlertDealType, PushAlert, PushSubscription

logger = logging.getLogger(__name__)
settings = get_settings()

PUSH_TTL_SECONDS = 86400

PUSH_SENT = "sent"
PUSH_EXPIRED = "expired"
PUSH_FAILED = "failed"


@dataclass
class PushNotification:
    id: str
    user_id: int
    alert_id: int
    title: str
    body: str
    icon: Optional[str]
    data: dict
    timestamp: datetime


@dataclass
class PushAlertResult:
    alerts_triggered: int = 0
    notifications_sent: int = 0
    pushes_delivered: int = 0


class NotificationHistory:
    """In-memory push history per user for dashboard display."""

    def __init__(self, max_notifications: int = 100):
        self._notifications: Dict[int, List[PushNotification]] = defaultdict(list)
        self._max_notifications = max_notifications

    def add(self, notification: PushNotification):
        bucket = self._notifications[notification.user_id]
        bucket.append(notification)
        if len(bucket) > self._max_notifications:
            bucket.pop(0)

    def get_recent(self, user_id: int, limit: int = 50) -> List[Dict]:
        bucket = self._notifications.get(user_id, [])
        recent = bucket[-limit:] if limit else bucket
        return [asdict(n) for n in reversed(recent)]

    def clear(self, user_id: Optional[int] = None):
        if user_id is None:
            self._notifications.clear()
        else:
            self._notifications.pop(user_id, None)


_history = NotificationHistory()


def get_notification_history() -> NotificationHistory:
    return _history


def _enum_value(value) -> Optional[str]:
    return value.value if hasattr(value, "value") else value


def deal_matches_alert(deal, alert: PushAlert) -> bool:
    """Check one deal against one alert's type, route, discount and price ceiling."""
    alert_type = _enum_value(alert.type)
    if alert_type != AlertDealType.BOTH.value and _enum_value(deal.type) != alert_type:
        return False

    # A blank side on either the alert or the deal means "any"
    if alert.origin and deal.origin and deal.origin.upper() != alert.origin.upper():
        return False
    if alert.destination and deal.destination and deal.destination.upper() != alert.destination.upper():
        return False

    if deal.discount_percentage < alert.min_discount:
        return False

    if alert.max_price and Decimal(str(deal.current_price)) > Decimal(str(alert.max_price)):
        return False

    return True


def format_deal_for_notification(deal) -> dict:
    current = Decimal(str(deal.current_price))
    original = Decimal(str(deal.original_price))
    if deal.origin and deal.destination:
        route = f"{deal.origin} → {deal.destination}"
    else:
        route = deal.title

    return {
        "title": f"🎉 {deal.discount_percentage}% OFF - {route}",
        "body": f"From {deal.currency} {original:.2f} to {deal.currency} {current:.2f}",
        "icon": "/favicon.ico",
        "data": {"url": deal.offer_url},
    }


class PushAlertService:
    def __init__(self, db: Session, history: Optional[NotificationHistory] = None):
        self.db = db
        self.history = history or get_notification_history()
        self.vapid_private_key = settings.vapid_private_key
        self.vapid_claims = {"sub": settings.vapid_claims_email}

    @property
    def is_push_configured(self) -> bool:
        return bool(settings.vapid_public_key and self.vapid_private_key)

    def _send_web_push(self, subscription_info: dict, payload: dict) -> str:
        """Blocking pywebpush call. Returns PUSH_SENT, PUSH_EXPIRED or PUSH_FAILED."""
        try:
            webpush(
                subscription_info=subscription_info,
                data=json.dumps(payload),
                vapid_private_key=self.vapid_private_key,
                vapid_claims=dict(self.vapid_claims),
                ttl=PUSH_TTL_SECONDS,
            )
            return PUSH_SENT
        except WebPushException as e:
            status = getattr(e.response, "status_code", None)
            if status in (404, 410):
                return PUSH_EXPIRED
            logger.error(f"[PushAlerts] Web push failed: {e}")
            return PUSH_FAILED

    async def deliver(self, user_id: int, payload: dict) -> int:
        """Push payload to every subscription of the user. Returns deliveries.

        Subscriptions the push service reports as gone (404/410) are deleted.
        """
        if not self.is_push_configured:
            logger.debug("[PushAlerts] VAPID keys not configured, skipping web push")
            return 0

        subscriptions = self.db.query(PushSubscription).filter(
            PushSubscription.user_id == user_id
        ).all()

        delivered = 0
        for subscription in subscriptions:
            status = await asyncio.to_thread(
                self._send_web_push, subscription.to_subscription_info(), payload
            )
            if status == PUSH_SENT:
                delivered += 1
            elif status == PUSH_EXPIRED:
                logger.warning(f"[PushAlerts] Subscription expired, removing: {subscription.endpoint[:60]}")
                self.db.delete(subscription)
                self.db.commit()
        return delivered

    async def process_push_alerts(self, deals: list) -> PushAlertResult:
        result = PushAlertResult()
        if not deals:
            return result

        active_alerts = self.db.query(PushAlert).filter(
            PushAlert.is_active == True
        ).order_by(PushAlert.created_at.desc()).all()

        if not active_alerts:
            logger.info("[PushAlerts] No active alerts found")
            return result

        logger.info(f"[PushAlerts] Checking {len(deals)} deals against {len(active_alerts)} alerts")

        alerts_by_user: Dict[int, List[PushAlert]] = defaultdict(list)
        for alert in active_alerts:
            alerts_by_user[alert.user_id].append(alert)

        for deal in deals:
            for alert in alerts_by_user.get(deal.user_id, []):
                if not deal_matches_alert(deal, alert):
                    continue

                result.alerts_triggered += 1
                logger.info(f'[PushAlerts] Alert "{alert.name}" triggered for deal: {deal.title}')

                payload = format_deal_for_notification(deal)
                self.history.add(PushNotification(
                    id=str(uuid.uuid4()),
                    user_id=deal.user_id,
                    alert_id=alert.id,
                    title=payload["title"],
                    body=payload["body"],
                    icon=payload.get("icon"),
                    data=payload["data"],
                    timestamp=datetime.now(timezone.utc),
                ))
                result.notifications_sent += 1

                try:
                    result.pushes_delivered += await self.deliver(deal.user_id, payload)
                except Exception as e:
                    logger.error(f"[PushAlerts] Delivery error for alert {alert.id}: {e}")

        logger.info(
            f"[PushAlerts] {result.alerts_triggered} alerts triggered, "
            f"{result.notifications_sent} notifications queued, {result.pushes_delivered} pushed"
        )
        return result
