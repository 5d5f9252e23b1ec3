"""Tests for push alert matching, payload formatting and delivery."""
from datetime import datetime
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from pywebpush import WebPushException

from dealtracker.models import AlertDealType, PushAlert, PushSubscription
from dealtracker.services.deals_service import FoundDeal
from dealtracker.services.push_alerts import (
    NotificationHistory,
    PUSH_EXPIRED,
    PushNotification,
    PushAlertService,
    deal_matches_alert,
    format_deal_for_notification,
)


def _make_deal(
    user_id=1,
    deal_type="flight",
    origin="GRU",
    destination="CDG",
    discount=60,
    current_price="200.00",
    original_price="500.00",
    title="GRU → CDG",
):
    return FoundDeal(
        rule_id=1,
        user_id=user_id,
        type=deal_type,
        title=title,
        origin=origin,
        destination=destination,
        departure_date=datetime(2026, 12, 1, 10),
        original_price=Decimal(original_price),
        current_price=Decimal(current_price),
        discount_percentage=discount,
        currency="USD",
        offer_url="https://www.amadeus.com/booking?offer=1",
        provider="Amadeus",
    )


def _make_alert(
    db=None,
    user_id=1,
    alert_type=AlertDealType.BOTH,
    origin=None,
    destination=None,
    min_discount=50,
    max_price=None,
    is_active=True,
    name="Europe deals",
):
    alert = PushAlert(
        user_id=user_id,
        name=name,
        type=alert_type,
        origin=origin,
        destination=destination,
        min_discount=min_discount,
        max_price=max_price,
        is_active=is_active,
    )
    if db is not None:
        db.add(alert)
        db.commit()
        db.refresh(alert)
    return alert


class TestDealMatchesAlert:
    def test_both_matches_any_type(self):
        alert = _make_alert(alert_type=AlertDealType.BOTH)
        assert deal_matches_alert(_make_deal(deal_type="flight"), alert)
        assert deal_matches_alert(_make_deal(deal_type="cruise"), alert)

    def test_type_mismatch(self):
        alert = _make_alert(alert_type=AlertDealType.CRUISE)
        assert not deal_matches_alert(_make_deal(deal_type="flight"), alert)

    def test_type_match(self):
        alert = _make_alert(alert_type=AlertDealType.FLIGHT)
        assert deal_matches_alert(_make_deal(deal_type="flight"), alert)

    def test_origin_mismatch(self):
        alert = _make_alert(origin="GIG")
        assert not deal_matches_alert(_make_deal(origin="GRU"), alert)

    def test_origin_match_is_case_insensitive(self):
        alert = _make_alert(origin="gru")
        assert deal_matches_alert(_make_deal(origin="GRU"), alert)

    def test_destination_mismatch(self):
        alert = _make_alert(destination="LHR")
        assert not deal_matches_alert(_make_deal(destination="CDG"), alert)

    def test_blank_deal_route_matches_any(self):
        alert = _make_alert(origin="GRU", destination="CDG")
        assert deal_matches_alert(_make_deal(origin=None, destination=None), alert)

    def test_discount_below_minimum(self):
        alert = _make_alert(min_discount=70)
        assert not deal_matches_alert(_make_deal(discount=60), alert)

    def test_discount_equal_to_minimum(self):
        alert = _make_alert(min_discount=60)
        assert deal_matches_alert(_make_deal(discount=60), alert)

    def test_price_above_ceiling(self):
        alert = _make_alert(max_price=Decimal("199.99"))
        assert not deal_matches_alert(_make_deal(current_price="200.00"), alert)

    def test_price_at_ceiling(self):
        alert = _make_alert(max_price=Decimal("200.00"))
        assert deal_matches_alert(_make_deal(current_price="200.00"), alert)

    def test_zero_ceiling_means_no_ceiling(self):
        alert = _make_alert(max_price=Decimal("0"))
        assert deal_matches_alert(_make_deal(current_price="9999.00"), alert)


class TestFormatDealForNotification:
    def test_route_payload(self):
        payload = format_deal_for_notification(_make_deal())

        assert payload["title"] == "🎉 60% OFF - GRU → CDG"
        assert payload["body"] == "From USD 500.00 to USD 200.00"
        assert payload["icon"] == "/favicon.ico"
        assert payload["data"] == {"url": "https://www.amadeus.com/booking?offer=1"}

    def test_falls_back_to_title_without_route(self):
        payload = format_deal_for_notification(
            _make_deal(origin=None, destination=None, title="Caribbean cruise")
        )
        assert payload["title"] == "🎉 60% OFF - Caribbean cruise"


class TestNotificationHistory:
    def _entry(self, user_id, entry_id):
        return PushNotification(
            id=entry_id,
            user_id=user_id,
            alert_id=1,
            title="t",
            body="b",
            icon=None,
            data={},
            timestamp=datetime(2026, 10, 1),
        )

    def test_recent_is_newest_first_and_bounded(self):
        history = NotificationHistory(max_notifications=2)
        for i in range(3):
            history.add(self._entry(1, str(i)))

        assert [n["id"] for n in history.get_recent(1)] == ["2", "1"]

    def test_clear_single_user(self):
        history = NotificationHistory()
        history.add(self._entry(1, "a"))
        history.add(self._entry(2, "b"))

        history.clear(1)

        assert history.get_recent(1) == []
        assert len(history.get_recent(2)) == 1


class TestProcessPushAlerts:
    async def test_no_deals_returns_zeros(self, db_session):
        result = await PushAlertService(db_session).process_push_alerts([])
        assert (result.alerts_triggered, result.notifications_sent) == (0, 0)

    async def test_no_active_alerts(self, db_session, user):
        _make_alert(db_session, user_id=user.id, is_active=False)

        result = await PushAlertService(db_session).process_push_alerts([_make_deal(user_id=user.id)])

        assert result.alerts_triggered == 0

    async def test_matches_only_alerts_of_deal_owner(self, db_session, user, other_user):
        _make_alert(db_session, user_id=user.id, name="mine")
        _make_alert(db_session, user_id=user.id, name="mine, strict", min_discount=90)
        _make_alert(db_session, user_id=other_user.id, name="theirs")

        history = NotificationHistory()
        service = PushAlertService(db_session, history=history)
        result = await service.process_push_alerts([
            _make_deal(user_id=user.id),
            _make_deal(user_id=user.id, title="second", discount=55),
        ])

        assert result.alerts_triggered == 2
        assert result.notifications_sent == 2
        assert result.pushes_delivered == 0
        assert len(history.get_recent(user.id)) == 2
        assert history.get_recent(other_user.id) == []

    async def test_history_entry_contents(self, db_session, user):
        alert = _make_alert(db_session, user_id=user.id)
        history = NotificationHistory()

        await PushAlertService(db_session, history=history).process_push_alerts([_make_deal(user_id=user.id)])

        entry = history.get_recent(user.id)[0]
        assert entry["alert_id"] == alert.id
        assert entry["title"].startswith("🎉 60% OFF")
        assert entry["data"]["url"].endswith("offer=1")


@pytest.fixture
def vapid_settings():
    fake = MagicMock(
        vapid_public_key="public-key",
        vapid_private_key="private-key",
        vapid_claims_email="mailto:ops@example.com",
    )
    with patch("dealtracker.services.push_alerts.settings", fake):
        yield fake


def _subscribe(db, user_id, endpoint="https://push.example.com/abc"):
    subscription = PushSubscription(user_id=user_id, endpoint=endpoint, p256dh="p256", auth="auth")
    db.add(subscription)
    db.commit()
    return subscription


class TestWebPushDelivery:
    async def test_not_configured_skips_push(self, db_session, user):
        _make_alert(db_session, user_id=user.id)
        _subscribe(db_session, user.id)

        with patch("dealtracker.services.push_alerts.webpush") as mock_push:
            result = await PushAlertService(db_session).process_push_alerts([_make_deal(user_id=user.id)])

        mock_push.assert_not_called()
        assert result.notifications_sent == 1
        assert result.pushes_delivered == 0

    async def test_delivers_to_each_subscription(self, db_session, user, vapid_settings):
        _make_alert(db_session, user_id=user.id)
        _subscribe(db_session, user.id, "https://push.example.com/a")
        _subscribe(db_session, user.id, "https://push.example.com/b")

        with patch("dealtracker.services.push_alerts.webpush") as mock_push:
            result = await PushAlertService(db_session).process_push_alerts([_make_deal(user_id=user.id)])

        assert result.pushes_delivered == 2
        kwargs = mock_push.call_args.kwargs
        assert kwargs["vapid_private_key"] == "private-key"
        assert kwargs["vapid_claims"] == {"sub": "mailto:ops@example.com"}
        assert kwargs["subscription_info"]["keys"] == {"p256dh": "p256", "auth": "auth"}
        assert "60% OFF" in kwargs["data"]

    async def test_expired_subscription_is_removed(self, db_session, user, vapid_settings):
        _make_alert(db_session, user_id=user.id)
        _subscribe(db_session, user.id)

        gone = WebPushException("Push failed: 410 Gone", response=MagicMock(status_code=410))
        with patch("dealtracker.services.push_alerts.webpush", side_effect=gone):
            result = await PushAlertService(db_session).process_push_alerts([_make_deal(user_id=user.id)])

        assert result.pushes_delivered == 0
        assert result.notifications_sent == 1
        assert db_session.query(PushSubscription).count() == 0

    async def test_other_push_errors_keep_subscription(self, db_session, user, vapid_settings):
        _make_alert(db_session, user_id=user.id)
        _subscribe(db_session, user.id)

        failure = WebPushException("Push failed: 500", response=MagicMock(status_code=500))
        with patch("dealtracker.services.push_alerts.webpush", side_effect=failure):
            await PushAlertService(db_session).process_push_alerts([_make_deal(user_id=user.id)])

        assert db_session.query(PushSubscription).count() == 1

    def test_worker_call_reports_expiry_without_touching_session(self, vapid_settings):
        db = MagicMock()
        service = PushAlertService(db)
        gone = WebPushException("Push failed: 404", response=MagicMock(status_code=404))

        with patch("dealtracker.services.push_alerts.webpush", side_effect=gone):
            status = service._send_web_push({"endpoint": "https://push.example.com/x", "keys": {}}, {})

        assert status == PUSH_EXPIRED
        db.delete.assert_not_called()
        db.commit.assert_not_called()
