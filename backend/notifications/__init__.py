"""
Notifications package - exposure and sunscreen reminders

Submodules:
- models: Reminder data models
- reminder_planner: Pure mapping from timer state/events to reminders
- expo_push: Expo push notification client
"""

from .models import PlannedReminder, ReminderType
from .reminder_planner import ReminderPlanner
from .expo_push import ExpoPushClient

__all__ = [
    "PlannedReminder",
    "ReminderType",
    "ReminderPlanner",
    "ExpoPushClient",
]
