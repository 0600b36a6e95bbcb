"""
sms.py — SMS delivery channel for volunteer alerts.

Delivery mechanism:
    • simulation: log the message and wait a fixed latency (development)
    • webhook:    HTTP POST to an SMS gateway endpoint

═══════════════════════════════════════════════════════════════════════════
WEBHOOK CONTRACT
═══════════════════════════════════════════════════════════════════════════

    POST {SMS_WEBHOOK_URL}
    Authorization: Bearer {SMS_API_KEY}          (when a key is configured)

    {
        "to":        "+1234567892",
        "from":      "RESCUE",
        "body":      "🚨 EMERGENCY ALERT - RescueHub ...",
        "reference": "req_1:vol_1"
    }

    Any 2xx response counts as accepted by the gateway.

═══════════════════════════════════════════════════════════════════════════
SEGMENTS
═══════════════════════════════════════════════════════════════════════════

    GSM 7-bit bodies split at 160 chars, anything with emoji / non-Latin
    text is sent as UCS-2 and splits at 70. Alert bodies carry emoji, so
    they are normally multi-segment.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

import httpx

from backend.app.core.errors import NotificationDeliveryError
from backend.app.volunteers.models import (
    DeliveryAttempt,
    DeliveryStatus,
    VolunteerNotification,
)

logger = logging.getLogger(__name__)

CHANNEL = "sms"

SMS_MAX_GSM7 = 160
SMS_MAX_UCS2 = 70


def count_segments(body: str) -> int:
    """Number of SMS segments needed for ``body``."""
    limit = SMS_MAX_GSM7 if body.isascii() else SMS_MAX_UCS2
    return max(1, 1 + (len(body) - 1) // limit)


async def _post_webhook(
    client: httpx.AsyncClient,
    notification: VolunteerNotification,
    message: str,
    *,
    webhook_url: str,
    api_key: Optional[str],
    sender_id: str,
) -> dict:
    headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
    reference = notification.volunteer_id
    if notification.emergency is not None:
        reference = f"{notification.emergency.id}:{notification.volunteer_id}"

    response = await client.post(
        webhook_url,
        json={
            "to": notification.phone,
            "from": sender_id,
            "body": message,
            "reference": reference,
        },
        headers=headers,
    )
    if response.status_code >= 400:
        raise NotificationDeliveryError(
            notification.volunteer_id, CHANNEL,
            f"gateway returned HTTP {response.status_code}",
        )
    try:
        return response.json()
    except ValueError:
        return {"raw": response.text[:200]}


async def send(
    notification: VolunteerNotification,
    message: str,
    *,
    provider: str = "simulation",
    webhook_url: Optional[str] = None,
    api_key: Optional[str] = None,
    sender_id: str = "RESCUE",
    simulated_latency: float = 0.1,
    client: Optional[httpx.AsyncClient] = None,
) -> DeliveryAttempt:
    """
    Send one SMS alert.

    Parameters
    ----------
    notification : VolunteerNotification
        Must carry a phone number.
    message : str
        Pre-rendered alert body.
    provider : str
        "simulation" or "webhook".
    webhook_url, api_key, sender_id
        Gateway settings, only used by the webhook provider.
    simulated_latency : float
        Seconds to wait in simulation mode.
    client : httpx.AsyncClient | None
        Shared client; a short-lived one is created when omitted.

    Returns
    -------
    DeliveryAttempt
        Never raises for delivery problems; they are recorded on the attempt.
    """
    attempt = DeliveryAttempt(
        channel=CHANNEL,
        volunteer_id=notification.volunteer_id,
        status=DeliveryStatus.SENDING,
    )

    if not notification.phone:
        attempt.status = DeliveryStatus.SKIPPED
        attempt.error_message = "No phone number on file"
        attempt.completed_at = datetime.now(timezone.utc)
        return attempt

    segments = count_segments(message)

    try:
        if provider == "simulation":
            await asyncio.sleep(simulated_latency)
            logger.info(
                "[SMS] → %s (%s): %d chars, %d segment(s)",
                notification.phone, notification.name, len(message), segments,
                extra={"volunteer_id": notification.volunteer_id},
            )
            attempt.status = DeliveryStatus.DELIVERED
            attempt.provider_response = {
                "mode": "simulated",
                "message_length": len(message),
                "segments": segments,
                "phone": notification.phone,
            }

        elif provider == "webhook":
            if not webhook_url:
                raise NotificationDeliveryError(
                    notification.volunteer_id, CHANNEL, "SMS_WEBHOOK_URL is not configured",
                )
            if client is not None:
                body = await _post_webhook(
                    client, notification, message,
                    webhook_url=webhook_url, api_key=api_key, sender_id=sender_id,
                )
            else:
                async with httpx.AsyncClient(timeout=10.0) as own_client:
                    body = await _post_webhook(
                        own_client, notification, message,
                        webhook_url=webhook_url, api_key=api_key, sender_id=sender_id,
                    )
            attempt.status = DeliveryStatus.DELIVERED
            attempt.provider_response = {"mode": "webhook", "segments": segments, "gateway": body}

        else:
            attempt.status = DeliveryStatus.FAILED
            attempt.error_message = f"Unknown SMS provider: {provider}"

    except (NotificationDeliveryError, httpx.HTTPError) as exc:
        logger.error(
            "[SMS] Failed for %s: %s", notification.volunteer_id, exc,
            extra={"volunteer_id": notification.volunteer_id},
        )
        attempt.status = DeliveryStatus.FAILED
        attempt.error_message = exc.message if isinstance(exc, NotificationDeliveryError) else str(exc)

    attempt.completed_at = datetime.now(timezone.utc)
    return attempt
