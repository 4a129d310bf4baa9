"""Subscription bookkeeping and risk alert dispatch."""

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from app.email_templates import build_alert_subject, generate_email_html
from app.mailer import Mailer
from app.models import RiskAssessment, SubscriptionStatus
from app.risk import get_risk_bg_color
from app.storage import StorageError, SubscriptionStore

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

INVALID_EMAIL_MESSAGE = "Please provide a valid email address."
SIMULATED_MESSAGE = "Notification simulated (RESEND_API_KEY missing)"
SENT_MESSAGE = "Alert sent successfully"
SANDBOX_MESSAGE = (
    "Resend Onboarding Limit: You can only send emails to your own verified "
    "address while in onboarding mode."
)
UNSUBSCRIBED_MESSAGE = "Unsubscribed successfully"
STORAGE_READ_ERROR = "Database unavailable"
STORAGE_WRITE_ERROR = "Database error"


def normalize_email(email: Optional[str]) -> str:
    """Trim and lower-case an address so it can be used as the store key."""
    return (email or "").strip().lower()


def is_valid_email(email: Optional[str]) -> bool:
    """Syntactic check: local part, "@", and a domain containing a dot."""
    return bool(EMAIL_PATTERN.match(normalize_email(email)))


class NotifyStatus(str, Enum):
    SENT = "sent"
    SIMULATED = "simulated"
    FAILED = "failed"
    INVALID_EMAIL = "invalid_email"


@dataclass
class NotifyResult:
    """
    Outcome of a notification request.

    Attributes:
        status: Sent, Simulated, Failed or InvalidEmail
        message: Human readable outcome, the provider's message on failure
        provider_id: Provider message id when sent
        policy_restricted: True when the mail provider refused due to sandbox limits
        subscription_saved: True when the subscription upsert succeeded
    """
    status: NotifyStatus
    message: str
    provider_id: Optional[str] = None
    policy_restricted: bool = False
    subscription_saved: bool = False

    @property
    def succeeded(self) -> bool:
        return self.status in (NotifyStatus.SENT, NotifyStatus.SIMULATED)


@dataclass
class UnsubscribeResult:
    success: bool
    message: str


class NotificationCoordinator:
    """
    Owns subscription records and decides when an alert is sent.

    Subscription writes are best-effort: a failed upsert is logged and the
    email is still attempted. Reads fail open to "not subscribed".
    """

    def __init__(
        self,
        store: SubscriptionStore,
        mailer: Mailer,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.store = store
        self.mailer = mailer
        self.clock = clock

    def get_status(self, email: str) -> SubscriptionStatus:
        """
        Look up whether an address is subscribed.

        Never raises: storage failures report not-subscribed with an error note.
        """
        key = normalize_email(email)
        try:
            record = self.store.get(key)
        except StorageError as e:
            logger.warning("Subscription lookup failed for %s: %s", key, e)
            return SubscriptionStatus(subscribed=False, auto_notify=False, error=STORAGE_READ_ERROR)

        if record is None:
            return SubscriptionStatus(subscribed=False, auto_notify=False)
        return SubscriptionStatus(subscribed=True, auto_notify=record.auto_notify)

    async def request_notification(
        self,
        email: str,
        assessment: RiskAssessment,
        location_name: str,
        save_subscription: bool,
        auto_notify: bool,
    ) -> NotifyResult:
        """
        Optionally save the subscription, then send one alert for the assessment.

        Low assessments are sent like any other; callers decide whether a Low
        level is worth alerting on.

        Args:
            email: Recipient address
            assessment: Risk Engine output to describe
            location_name: Place the assessment applies to
            save_subscription: Upsert the subscription before sending
            auto_notify: Auto-notify flag stored with the subscription

        Returns:
            NotifyResult; an invalid address returns InvalidEmail with no side effects
        """
        key = normalize_email(email)
        if not EMAIL_PATTERN.match(key):
            return NotifyResult(status=NotifyStatus.INVALID_EMAIL, message=INVALID_EMAIL_MESSAGE)

        saved = False
        if save_subscription:
            try:
                await asyncio.to_thread(self.store.upsert, key, auto_notify)
                saved = True
            except StorageError as e:
                logger.error("Failed to save subscription for %s: %s", key, e)

        level = assessment.level.value
        subject = build_alert_subject(level, location_name)
        html = generate_email_html(
            location_name=location_name,
            risk_level=level,
            risk_bg_color=get_risk_bg_color(assessment.level),
            triggers=assessment.triggers,
            advice=assessment.advice,
        )

        if not self.mailer.is_configured:
            logger.info("[MOCK NOTIFICATION] Resend API key missing; would send %r to %s", subject, key)
            result = NotifyResult(
                status=NotifyStatus.SIMULATED,
                message=SIMULATED_MESSAGE,
                subscription_saved=saved,
            )
        else:
            dispatch = await self.mailer.send(key, subject, html)
            if dispatch.ok:
                result = NotifyResult(
                    status=NotifyStatus.SENT,
                    message=SENT_MESSAGE,
                    provider_id=dispatch.provider_id,
                    subscription_saved=saved,
                )
            else:
                result = NotifyResult(
                    status=NotifyStatus.FAILED,
                    message=SANDBOX_MESSAGE if dispatch.sandbox_restricted else dispatch.error,
                    policy_restricted=dispatch.sandbox_restricted,
                    subscription_saved=saved,
                )

        if saved and result.succeeded:
            try:
                await asyncio.to_thread(self.store.mark_notified, key, self.clock())
            except StorageError as e:
                logger.error("Failed to record notification time for %s: %s", key, e)

        return result

    def unsubscribe(self, email: str) -> UnsubscribeResult:
        """
        Remove a subscription.

        Idempotent. A syntactically invalid address is accepted as a no-op
        rather than reported as an error.
        """
        key = normalize_email(email)
        if not EMAIL_PATTERN.match(key):
            logger.info("Ignoring unsubscribe for invalid address %r", email)
            return UnsubscribeResult(success=True, message=UNSUBSCRIBED_MESSAGE)

        try:
            self.store.delete(key)
        except StorageError as e:
            logger.error("Failed to delete subscription for %s: %s", key, e)
            return UnsubscribeResult(success=False, message=STORAGE_WRITE_ERROR)

        return UnsubscribeResult(success=True, message=UNSUBSCRIBED_MESSAGE)
