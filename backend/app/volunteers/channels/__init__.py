"""
Volunteer alert delivery channels.

Each channel exposes an async ``send(notification, message, ...)``
returning a DeliveryAttempt.
"""
