"""Automation event fan-out to UI subscribers."""

from reviewpilot.notifications.sink import BroadcastNotificationSink, NotificationSink

__all__ = ["BroadcastNotificationSink", "NotificationSink"]
