"""
Reminder domain models.

Defines the local reminders derived from exposure timer state: burn threshold
exceeded, sunscreen reapplication due, and the halfway sunscreen prompt.
"""

from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Optional
from enum import Enum


class ReminderType(str, Enum):
    """Types of exposure reminders."""
    EXPOSURE_EXCEEDED = "exposure_exceeded"
    SUNSCREEN_REAPPLY = "sunscreen_reapply"
    SUNSCREEN_PROMPT = "sunscreen_prompt"


@dataclass(frozen=True)
class PlannedReminder:
    """A reminder the client should schedule (or fire now when fire_at has passed)."""
    owner_id: str
    reminder_type: ReminderType
    fire_at: datetime
    title: str
    body: str
    uv_index: Optional[int] = None
    created_at: datetime = None

    def __post_init__(self):
        if self.created_at is None:
            object.__setattr__(self, 'created_at', datetime.now(timezone.utc))

    def to_mongo_doc(self) -> dict:
        """Convert to MongoDB document."""
        doc = asdict(self)
        doc['reminder_type'] = self.reminder_type.value
        return doc

    def is_due(self, now: datetime) -> bool:
        return self.fire_at <= now
