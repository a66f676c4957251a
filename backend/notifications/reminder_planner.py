"""
Reminder planning from exposure timer state.

Pure and deterministic: given a TimerState snapshot (or the events from one timer
operation) returns the reminders a client should schedule or deliver. Delivery is
left to ExpoPushClient or the device's local notification scheduler.
"""

import math
from datetime import timedelta
from typing import Iterable, List, Optional

from exposure_timer_service import TimerEvent, TimerPhase, TimerState

from .models import PlannedReminder, ReminderType

EXCEEDED_TITLE = "Time to get out of the sun"
REAPPLY_TITLE = "Reapply sunscreen"
PROMPT_TITLE = "Halfway to your burn limit"


def _exceeded_body(state: TimerState) -> str:
    return (
        f"You've reached your safe exposure limit at UV {state.current_adjusted_uv}. "
        f"Seek shade or cover up."
    )


def _reapply_body(state: TimerState) -> str:
    return "It's been 2 hours since you applied sunscreen. Reapply to stay protected."


def _prompt_body(state: TimerState) -> str:
    minutes = int(state.remaining_seconds // 60)
    return f"About {minutes} min of safe exposure left at UV {state.current_adjusted_uv}. Consider sunscreen."


class ReminderPlanner:

    @staticmethod
    def plan(owner_id: str, state: TimerState) -> List[PlannedReminder]:
        """Upcoming reminders implied by the current state, earliest first."""
        reminders: List[PlannedReminder] = []
        now = state.observed_at

        accruing = (
            state.phase in (TimerPhase.RUNNING, TimerPhase.SUNSCREEN_APPLIED)
            and state.session_start is not None
        )
        if accruing and not math.isinf(state.remaining_seconds):
            reminders.append(PlannedReminder(
                owner_id=owner_id,
                reminder_type=ReminderType.EXPOSURE_EXCEEDED,
                fire_at=now + timedelta(seconds=state.remaining_seconds),
                title=EXCEEDED_TITLE,
                body=_exceeded_body(state),
                uv_index=state.current_adjusted_uv,
                created_at=now,
            ))

        if state.sunscreen_reapply_deadline is not None:
            reminders.append(PlannedReminder(
                owner_id=owner_id,
                reminder_type=ReminderType.SUNSCREEN_REAPPLY,
                fire_at=state.sunscreen_reapply_deadline,
                title=REAPPLY_TITLE,
                body=_reapply_body(state),
                uv_index=state.current_adjusted_uv,
                created_at=now,
            ))

        return sorted(reminders, key=lambda r: r.fire_at)

    @staticmethod
    def for_events(owner_id: str, events: Iterable[TimerEvent], state: TimerState) -> List[PlannedReminder]:
        """Reminders to deliver immediately for events fired by a timer operation."""
        reminders = []
        for event in events:
            if event == TimerEvent.EXCEEDED:
                reminder_type, title, body = ReminderType.EXPOSURE_EXCEEDED, EXCEEDED_TITLE, _exceeded_body(state)
            elif event == TimerEvent.REAPPLY_DUE:
                reminder_type, title, body = ReminderType.SUNSCREEN_REAPPLY, REAPPLY_TITLE, _reapply_body(state)
            else:
                continue
            reminders.append(PlannedReminder(
                owner_id=owner_id,
                reminder_type=reminder_type,
                fire_at=state.observed_at,
                title=title,
                body=body,
                uv_index=state.current_adjusted_uv,
                created_at=state.observed_at,
            ))
        return reminders

    @staticmethod
    def sunscreen_prompt(owner_id: str, state: TimerState, threshold: float = 0.5) -> Optional[PlannedReminder]:
        if state.phase != TimerPhase.RUNNING or state.sunscreen_reapply_deadline is not None:
            return None
        if state.exposure_progress < threshold:
            return None
        return PlannedReminder(
            owner_id=owner_id,
            reminder_type=ReminderType.SUNSCREEN_PROMPT,
            fire_at=state.observed_at,
            title=PROMPT_TITLE,
            body=_prompt_body(state),
            uv_index=state.current_adjusted_uv,
            created_at=state.observed_at,
        )
