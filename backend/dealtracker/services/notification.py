import asyncio
import logging
import smtplib
import ssl
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from email.message import EmailMessage
from pathlib import Path
from typing import List, Optional, Tuple

import httpx
from jinja2 import Environment, FileSystemLoader, select_autoescape

from dealtracker.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"
WEBHOOK_USER_AGENT = "FlightDealsTracker/1.0"


def _short_date(value: Optional[datetime]) -> str:
    if not value:
        return "-"
    return value.strftime("%b %d, %Y")


def _money(value) -> str:
    return f"{Decimal(str(value)):.2f}"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


_jinja_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html"]),
)
_jinja_env.filters["short_date"] = _short_date
_jinja_env.filters["money"] = _money


def _rule_type(rule) -> str:
    return rule.type.value if hasattr(rule.type, "value") else str(rule.type)


@dataclass
class DispatchResult:
    email_sent: bool = False
    webhook_sent: bool = False

    @property
    def any_sent(self) -> bool:
        return self.email_sent or self.webhook_sent


def render_email(deals: list, rule) -> Tuple[str, str]:
    """Return (subject, html) for a rule's batch of deals."""
    subject = f"🎉 {len(deals)} New Deal(s) Found: {rule.name}"
    html = _jinja_env.get_template("deals_email.html").render(
        deals=deals,
        rule=rule,
        dashboard_url=settings.base_url,
    )
    return subject, html


def render_plain_text(deals: list, rule) -> str:
    lines = [f"New deals for rule: {rule.name}", ""]
    for deal in deals:
        lines.append(
            f"- {deal.title}: {deal.currency} {_money(deal.current_price)} "
            f"({deal.discount_percentage}% off {deal.currency} {_money(deal.original_price)})"
        )
        lines.append(f"  {deal.offer_url}")
    return "\n".join(lines) + "\n"


def build_webhook_payload(deals: list, rule) -> dict:
    return {
        "rule": {
            "id": rule.id,
            "name": rule.name,
            "type": _rule_type(rule),
        },
        "deals": [
            {
                "title": deal.title,
                "origin": deal.origin,
                "destination": deal.destination,
                "departureDate": _iso(deal.departure_date),
                "returnDate": _iso(deal.return_date),
                "originalPrice": float(deal.original_price),
                "currentPrice": float(deal.current_price),
                "discountPercentage": deal.discount_percentage,
                "currency": deal.currency,
                "offerUrl": deal.offer_url,
                "provider": deal.provider,
            }
            for deal in deals
        ],
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


class EmailNotifier:
    """
    Sends the rendered deals email over SMTP.

    With no SMTP host configured the email is only logged (dry run) and
    counts as sent, so local setups still exercise the full job.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_ssl: Optional[bool] = None,
        sender: Optional[str] = None,
    ):
        self.host = host if host is not None else settings.smtp_host
        self.port = port or settings.smtp_port
        self.username = username if username is not None else settings.smtp_username
        self.password = password if password is not None else settings.smtp_password
        self.use_ssl = settings.smtp_use_ssl if use_ssl is None else use_ssl
        self.sender = sender or settings.email_from

    @property
    def is_configured(self) -> bool:
        return bool(self.host)

    def _deliver(self, msg: EmailMessage) -> None:
        context = ssl.create_default_context()
        if self.use_ssl:
            with smtplib.SMTP_SSL(self.host, self.port, context=context, timeout=20) as s:
                if self.username:
                    s.login(self.username, self.password)
                s.send_message(msg)
        else:
            with smtplib.SMTP(self.host, self.port, timeout=20) as s:
                s.ehlo()
                if s.has_extn("starttls"):
                    s.starttls(context=context)
                    s.ehlo()
                if self.username:
                    s.login(self.username, self.password)
                s.send_message(msg)

    async def send(self, email: str, deals: list, rule) -> bool:
        if not email:
            logger.error("No email provided for notification")
            return False

        try:
            subject, html = render_email(deals, rule)

            if not self.is_configured:
                logger.info(f"SMTP not configured; logging email to {email} with {len(deals)} deals")
                logger.info(f"Subject: {subject}")
                logger.info(f"HTML content length: {len(html)} chars")
                return True

            msg = EmailMessage()
            msg["Subject"] = subject
            msg["From"] = self.sender
            msg["To"] = email
            msg.set_content(render_plain_text(deals, rule))
            msg.add_alternative(html, subtype="html")

            await asyncio.to_thread(self._deliver, msg)
            logger.info(f"Email sent to {email} ({len(deals)} deals)")
            return True

        except Exception as e:
            logger.error(f"Error sending email notification: {e}")
            return False


class WebhookNotifier:
    def __init__(self, timeout: Optional[float] = None, http_client: Optional[httpx.AsyncClient] = None):
        self.timeout = timeout or settings.webhook_timeout_seconds
        self._http_client = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    async def close(self):
        if self._http_client is not None and not self._http_client.is_closed:
            await self._http_client.aclose()
        self._http_client = None

    async def send(self, webhook_url: str, deals: list, rule) -> bool:
        if not webhook_url:
            logger.error("No webhook URL provided for notification")
            return False

        try:
            client = await self._get_client()
            response = await client.post(
                webhook_url,
                json=build_webhook_payload(deals, rule),
                headers={
                    "Content-Type": "application/json",
                    "User-Agent": WEBHOOK_USER_AGENT,
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            logger.info(f"Webhook sent successfully to {webhook_url}")
            return True

        except httpx.HTTPStatusError as e:
            logger.error(f"Webhook error: {e.response.status_code} {e.response.text[:200]}")
            return False
        except httpx.RequestError as e:
            logger.warning(f"Could not reach webhook {webhook_url}: {e}")
            return False
        except Exception as e:
            logger.error(f"Error sending webhook notification: {e}")
            return False


class NotificationDispatcher:
    """Routes a rule's deals to the channels the rule asks for."""

    def __init__(
        self,
        email_notifier: Optional[EmailNotifier] = None,
        webhook_notifier: Optional[WebhookNotifier] = None,
    ):
        self.email = email_notifier or EmailNotifier()
        self.webhook = webhook_notifier or WebhookNotifier()

    async def close(self):
        await self.webhook.close()

    async def send_notifications(self, rule, deals: List) -> DispatchResult:
        result = DispatchResult()
        if not deals:
            return result

        if rule.wants_email and rule.notification_email:
            result.email_sent = await self.email.send(rule.notification_email, deals, rule)

        if rule.wants_webhook and rule.notification_webhook:
            result.webhook_sent = await self.webhook.send(rule.notification_webhook, deals, rule)

        return result
