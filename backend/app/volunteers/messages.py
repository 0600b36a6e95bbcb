"""
messages.py — Alert text sent to a matched volunteer.

Template:

    🚨 EMERGENCY ALERT - RescueHub

    {type icon} {title}
    {urgency icon} Priority: {URGENCY}
    📍 Location: {location}
    👥 People affected: {n}
    📏 Distance: {d} km away

    📝 Details: {description}

    Reply ACCEPT to respond or check the RescueHub app for more details.
"""

from __future__ import annotations

from typing import Dict

from backend.app.volunteers.models import VolunteerNotification

URGENCY_ICONS: Dict[str, str] = {
    "low": "🟡",
    "medium": "🟠",
    "critical": "🔴",
}

TYPE_ICONS: Dict[str, str] = {
    "medical": "🏥",
    "food": "🍞",
    "water": "💧",
    "shelter": "🏠",
    "rescue": "🛟",
    "natural_disaster": "🌪️",
    "fire": "🔥",
    "flood": "🌊",
    "structural_collapse": "🏗️",
    "missing_person": "👤",
    "voice_emergency": "🎙️",
    "other": "⚠️",
}

DEFAULT_URGENCY_ICON = "⚪"
DEFAULT_TYPE_ICON = "⚠️"


def format_alert_message(notification: VolunteerNotification) -> str:
    """Render the SMS body for one volunteer."""
    emergency = notification.emergency
    if emergency is None:
        raise ValueError("Notification has no emergency attached")

    urgency_icon = URGENCY_ICONS.get(emergency.urgency, DEFAULT_URGENCY_ICON)
    type_icon = TYPE_ICONS.get(emergency.type, DEFAULT_TYPE_ICON)

    return (
        "🚨 EMERGENCY ALERT - RescueHub\n"
        "\n"
        f"{type_icon} {emergency.title}\n"
        f"{urgency_icon} Priority: {emergency.urgency.upper()}\n"
        f"📍 Location: {emergency.location}\n"
        f"👥 People affected: {emergency.people_count}\n"
        f"📏 Distance: {notification.distance_km:.2f} km away\n"
        "\n"
        f"📝 Details: {emergency.description}\n"
        "\n"
        "Reply ACCEPT to respond or check the RescueHub app for more details."
    )
