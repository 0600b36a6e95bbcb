"""
dispatcher.py — Notify nearby volunteers about a new emergency request.

═══════════════════════════════════════════════════════════════════════════
DISPATCH FLOW
═══════════════════════════════════════════════════════════════════════════

    emergency request
          │
          ├── no coordinates ──► {success: false, notifiedCount: 0,
          │                       errors: ["Emergency request missing coordinates"]}
          ▼
    ProximityMatcher.find_nearby_volunteers(lat, lng, radius)
          │
          ├── no candidates ───► {success: true, notifiedCount: 0, errors: []}
          ▼
    per candidate, concurrently:
        format_alert_message → sender(notification, message)
            bounded by delivery_timeout, retried with exponential backoff
          │
          ▼
    success = notifiedCount > 0

Every failure on one recipient is recorded in ``errors`` and never stops the
others. Nothing escapes ``notify_nearby_volunteers`` as an exception.

═══════════════════════════════════════════════════════════════════════════
RETRY
═══════════════════════════════════════════════════════════════════════════

    delay = backoff_base × 2^(attempt - 1)

    base=0.5s, max_retries=2:   attempt 1 → 0.5s → attempt 2 → 1.0s → attempt 3
"""

from __future__ import annotations

import asyncio
import functools
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

import httpx

from backend.app.core.config import Settings
from backend.app.storage.models import EmergencyRequest
from backend.app.volunteers.channels import sms
from backend.app.volunteers.matcher import ProximityMatcher
from backend.app.volunteers.messages import format_alert_message
from backend.app.volunteers.models import (
    DeliveryAttempt,
    DeliveryStatus,
    EmergencySummary,
    NotificationResult,
    VolunteerNotification,
)

logger = logging.getLogger(__name__)

MISSING_COORDINATES_ERROR = "Emergency request missing coordinates"
NO_VOLUNTEERS_MESSAGE = "No nearby volunteers found"

Sender = Callable[[VolunteerNotification, str], Awaitable[DeliveryAttempt]]


# ═══════════════════════════════════════════════════════════════════════════
# Retry Configuration
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RetryConfig:
    max_retries: int = 1
    backoff_base_seconds: float = 0.5

    def backoff(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based)."""
        return self.backoff_base_seconds * (2 ** (attempt - 1))


def sms_sender_from_settings(
    settings: Settings,
    client: Optional[httpx.AsyncClient] = None,
) -> Sender:
    """Bind the SMS channel to the configured provider."""
    return functools.partial(
        sms.send,
        provider=settings.SMS_PROVIDER,
        webhook_url=settings.SMS_WEBHOOK_URL,
        api_key=settings.SMS_API_KEY,
        sender_id=settings.SMS_SENDER_ID,
        simulated_latency=settings.SMS_SIMULATED_LATENCY,
        client=client,
    )


# ═══════════════════════════════════════════════════════════════════════════
# Dispatcher
# ═══════════════════════════════════════════════════════════════════════════

class NotificationDispatcher:
    """
    Match volunteers to an emergency and send each one an alert.

    Parameters
    ----------
    matcher : ProximityMatcher
    sender : Sender | None
        ``async (notification, message) -> DeliveryAttempt``. Defaults to the
        simulated SMS channel.
    delivery_timeout : float
        Deadline in seconds for a single send attempt.
    retry : RetryConfig
    radius_km : float | None
        Search radius; None uses the matcher's default.
    """

    def __init__(
        self,
        matcher: ProximityMatcher,
        *,
        sender: Optional[Sender] = None,
        delivery_timeout: float = 10.0,
        retry: RetryConfig = RetryConfig(),
        radius_km: Optional[float] = None,
    ):
        self.matcher = matcher
        self.sender: Sender = sender or sms.send
        self.delivery_timeout = delivery_timeout
        self.retry = retry
        self.radius_km = radius_km

    @classmethod
    def from_settings(
        cls,
        matcher: ProximityMatcher,
        settings: Settings,
        client: Optional[httpx.AsyncClient] = None,
    ) -> "NotificationDispatcher":
        return cls(
            matcher,
            sender=sms_sender_from_settings(settings, client),
            delivery_timeout=settings.NOTIFY_DELIVERY_TIMEOUT,
            retry=RetryConfig(settings.NOTIFY_MAX_RETRIES, settings.NOTIFY_RETRY_BACKOFF),
            radius_km=settings.DEFAULT_RADIUS_KM,
        )

    # ── Single recipient ──

    async def _attempt_once(
        self, notification: VolunteerNotification, message: str,
    ) -> DeliveryAttempt:
        try:
            return await asyncio.wait_for(
                self.sender(notification, message), timeout=self.delivery_timeout,
            )
        except asyncio.TimeoutError:
            return DeliveryAttempt(
                volunteer_id=notification.volunteer_id,
                status=DeliveryStatus.TIMED_OUT,
                error_message=f"Delivery timed out after {self.delivery_timeout:g}s",
            )
        except Exception as exc:
            logger.exception(
                "Sender raised for volunteer %s", notification.volunteer_id,
                extra={"volunteer_id": notification.volunteer_id},
            )
            return DeliveryAttempt(
                volunteer_id=notification.volunteer_id,
                status=DeliveryStatus.FAILED,
                error_message=str(exc) or type(exc).__name__,
            )

    async def _deliver(self, notification: VolunteerNotification) -> DeliveryAttempt:
        message = format_alert_message(notification)

        logger.info(
            "Dispatching alert to %s (%s) at %.2f km:\n%s",
            notification.name, notification.phone, notification.distance_km, message,
            extra={
                "volunteer_id": notification.volunteer_id,
                "distance_km": notification.distance_km,
            },
        )

        result = await self._attempt_once(notification, message)
        for retry_num in range(1, self.retry.max_retries + 1):
            if result.status in (DeliveryStatus.DELIVERED, DeliveryStatus.SKIPPED):
                break
            delay = self.retry.backoff(retry_num)
            logger.info(
                "Retry %d/%d for %s in %.1fs (%s)",
                retry_num, self.retry.max_retries, notification.volunteer_id,
                delay, result.error_message,
                extra={"volunteer_id": notification.volunteer_id},
            )
            await asyncio.sleep(delay)
            result = await self._attempt_once(notification, message)
            result.retry_count = retry_num

        return result

    # ── Batch ──

    async def notify_nearby_volunteers(self, request: EmergencyRequest) -> NotificationResult:
        """
        Alert every reachable volunteer in range of ``request``.

        Returns a NotificationResult; precondition failures, matcher errors
        and delivery failures are all reported through it.
        """
        if request.coordinates is None:
            logger.warning(
                "Cannot notify volunteers for %s: no coordinates", request.id,
                extra={"emergency_id": request.id},
            )
            return NotificationResult(
                success=False, notified_count=0, errors=[MISSING_COORDINATES_ERROR],
            )

        try:
            candidates = await self.matcher.find_nearby_volunteers(
                request.coordinates.lat, request.coordinates.lng, self.radius_km,
            )
        except Exception as exc:
            logger.error(
                "Volunteer matching failed for %s: %s", request.id, exc,
                extra={"emergency_id": request.id},
            )
            return NotificationResult(
                success=False, notified_count=0,
                errors=[f"Volunteer matching failed: {exc}"],
            )

        if not candidates:
            logger.warning(
                "No nearby volunteers found for emergency %s", request.id,
                extra={"emergency_id": request.id, "candidate_count": 0},
            )
            return NotificationResult(
                success=True, notified_count=0, errors=[], message=NO_VOLUNTEERS_MESSAGE,
            )

        summary = EmergencySummary.from_request(request)
        notifications = [c.with_emergency(summary) for c in candidates]

        attempts: List[DeliveryAttempt] = await asyncio.gather(
            *(self._deliver(n) for n in notifications)
        )

        notified = 0
        errors: List[str] = []
        for notification, attempt in zip(notifications, attempts):
            if attempt.delivered:
                notified += 1
            else:
                reason = attempt.error_message or attempt.status.value
                errors.append(f"Failed to notify {notification.name}: {reason}")

        logger.info(
            "Emergency %s: notified %d of %d volunteers",
            request.id, notified, len(notifications),
            extra={
                "emergency_id": request.id,
                "notified_count": notified,
                "candidate_count": len(notifications),
            },
        )

        return NotificationResult(
            success=notified > 0,
            notified_count=notified,
            errors=errors,
            attempts=list(attempts),
        )
