"""
Exposure Timer Service

Tracks a user's sun exposure against a UV-derived burn threshold.

Phases:
  NOT_STARTED -> RUNNING <-> PAUSED
  RUNNING | PAUSED -> SUNSCREEN_APPLIED -> RUNNING
  RUNNING | PAUSED | SUNSCREEN_APPLIED -> EXCEEDED (until reset)
  any -> NOT_STARTED via reset()

Elapsed exposure is reconstructed from timestamps on every observation:
  elapsed = prior_elapsed + (now - session_start)
so a suspended process picks up where it left off without a running scheduler.

Sunscreen starts an independent 2-hour reapply countdown. It is a reminder only:
the adjusted UV index and the burn clock are unaffected.

Instances have a single owner. Callers sharing one across tasks must serialize calls.
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone, tzinfo
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from pymongo.errors import PyMongoError

from exposure_store import DailyExposureRecord, DailyExposureStore
from uv_risk_service import REFERENCE_SKIN_TYPE, SkinType, time_to_burn_minutes

logger = logging.getLogger(__name__)


class TimerPhase(str, Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    PAUSED = "paused"
    SUNSCREEN_APPLIED = "sunscreen_applied"
    EXCEEDED = "exceeded"


class TimerEvent(str, Enum):
    EXCEEDED = "exceeded"
    REAPPLY_DUE = "reapply_due"


class ExposureStatus(str, Enum):
    SAFE = "safe"
    WARNING = "warning"
    EXCEEDED = "exceeded"


@dataclass(frozen=True)
class TimerState:
    """Read-only snapshot of a timer for display and reminder scheduling."""
    phase: TimerPhase
    session_start: Optional[datetime]
    elapsed_seconds: float
    total_exposure_seconds_today: float
    last_sunscreen_application: Optional[datetime]
    sunscreen_reapply_deadline: Optional[datetime]
    current_adjusted_uv: int
    time_to_burn_minutes: float
    remaining_seconds: float
    exposure_progress: float
    exposure_status: ExposureStatus
    observed_at: datetime


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a timer operation; accepted=False means nothing changed."""
    accepted: bool
    previous_phase: TimerPhase
    phase: TimerPhase
    events: Tuple[TimerEvent, ...] = ()
    reason: Optional[str] = None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _aware(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


class ExposureTimer:
    SUNSCREEN_REAPPLY_SECONDS = 7200
    WARNING_PROGRESS = 0.8
    SUNSCREEN_PROMPT_PROGRESS = 0.5

    _ACTIVE_PHASES = (TimerPhase.RUNNING, TimerPhase.PAUSED, TimerPhase.SUNSCREEN_APPLIED)

    def __init__(
        self,
        owner_id: str = "default",
        clock: Optional[Callable[[], datetime]] = None,
        tz: tzinfo = timezone.utc,
        store: Optional[DailyExposureStore] = None,
        skin_type: SkinType = REFERENCE_SKIN_TYPE,
        adjusted_uv: int = 0,
    ):
        """
        Args:
            owner_id: Key for the persisted daily total
            clock: Returns the current aware datetime (default: UTC wall clock)
            tz: Zone whose midnight resets the daily total
            store: Optional persistence for the daily total
            skin_type: Skin type used for time-to-burn
            adjusted_uv: Initial adjusted UV index
        """
        self.owner_id = owner_id
        self.tz = tz
        self.skin_type = skin_type
        self._clock = clock or _utc_now
        self._store = store

        self._phase = TimerPhase.NOT_STARTED
        self._session_start: Optional[datetime] = None
        self._prior_elapsed = 0.0
        self._last_sunscreen: Optional[datetime] = None
        self._reapply_deadline: Optional[datetime] = None
        # Exposure carried across a UV 0 interval, and the budget it was measured in
        self._held_elapsed = 0.0
        self._held_budget: Optional[float] = None

        self._adjusted_uv = max(0, int(adjusted_uv))
        self._time_to_burn = time_to_burn_minutes(self._adjusted_uv, skin_type)

        now = self._now()
        self._today = self._local_date(now)
        self._today_total = 0.0
        self._credited_until: Optional[datetime] = None
        self._restore_daily_total()

    # ==================== Read access ====================

    @property
    def phase(self) -> TimerPhase:
        return self._phase

    @property
    def current_adjusted_uv(self) -> int:
        return self._adjusted_uv

    @property
    def time_to_burn_minutes(self) -> float:
        return self._time_to_burn

    @property
    def session_active(self) -> bool:
        return self._session_start is not None

    def elapsed_seconds(self, now: Optional[datetime] = None) -> float:
        now = self._now(now)
        if self._session_start is None:
            return self._prior_elapsed
        return self._prior_elapsed + max(0.0, (now - self._session_start).total_seconds())

    def total_exposure_seconds_today(self, now: Optional[datetime] = None) -> float:
        now = self._now(now)
        base = self._today_total if self._local_date(now) == self._today else 0.0
        return base + self._uncredited_seconds(now)

    def remaining_seconds(self, now: Optional[datetime] = None) -> float:
        if math.isinf(self._time_to_burn):
            return math.inf
        return max(0.0, self._time_to_burn * 60.0 - self.elapsed_seconds(now))

    def exposure_progress(self, now: Optional[datetime] = None) -> float:
        """Fraction of the burn threshold already absorbed, 0.0-1.0."""
        if math.isinf(self._time_to_burn):
            return 0.0
        return min(1.0, self.elapsed_seconds(now) / (self._time_to_burn * 60.0))

    def exposure_status(self, now: Optional[datetime] = None) -> ExposureStatus:
        progress = self.exposure_progress(now)
        if self._phase == TimerPhase.EXCEEDED or progress >= 1.0:
            return ExposureStatus.EXCEEDED
        if progress >= self.WARNING_PROGRESS:
            return ExposureStatus.WARNING
        return ExposureStatus.SAFE

    def should_prompt_sunscreen(self, now: Optional[datetime] = None) -> bool:
        """Halfway to burning with no reapply countdown running."""
        return (
            self._phase == TimerPhase.RUNNING
            and self._reapply_deadline is None
            and self.exposure_progress(now) >= self.SUNSCREEN_PROMPT_PROGRESS
        )

    def snapshot(self, now: Optional[datetime] = None) -> TimerState:
        now = self._now(now)
        return TimerState(
            phase=self._phase,
            session_start=self._session_start,
            elapsed_seconds=self.elapsed_seconds(now),
            total_exposure_seconds_today=self.total_exposure_seconds_today(now),
            last_sunscreen_application=self._last_sunscreen,
            sunscreen_reapply_deadline=self._reapply_deadline,
            current_adjusted_uv=self._adjusted_uv,
            time_to_burn_minutes=self._time_to_burn,
            remaining_seconds=self.remaining_seconds(now),
            exposure_progress=self.exposure_progress(now),
            exposure_status=self.exposure_status(now),
            observed_at=now,
        )

    # ==================== Transitions ====================

    def start(self, now: Optional[datetime] = None) -> TransitionResult:
        now = self._now(now)
        previous = self._phase
        if previous == TimerPhase.RUNNING:
            return TransitionResult(True, previous, previous, reason="already running")
        if previous not in (TimerPhase.NOT_STARTED, TimerPhase.PAUSED, TimerPhase.SUNSCREEN_APPLIED):
            return self._reject("start", previous)

        self._credit(now)
        self._begin_session(now)
        self._phase = TimerPhase.RUNNING
        return self._accept(previous)

    def pause(self, now: Optional[datetime] = None) -> TransitionResult:
        now = self._now(now)
        previous = self._phase
        if previous != TimerPhase.RUNNING:
            return self._reject("pause", previous)

        self._credit(now)
        self._end_session(now)
        self._phase = TimerPhase.PAUSED
        return self._accept(previous)

    def apply_sunscreen(self, now: Optional[datetime] = None) -> TransitionResult:
        now = self._now(now)
        previous = self._phase
        if previous not in (TimerPhase.RUNNING, TimerPhase.PAUSED):
            return self._reject("apply_sunscreen", previous)

        # Exposure keeps accruing if a session is running
        self._credit(now)
        self._last_sunscreen = now
        self._reapply_deadline = now + timedelta(seconds=self.SUNSCREEN_REAPPLY_SECONDS)
        self._phase = TimerPhase.SUNSCREEN_APPLIED
        logger.info(f"[TIMER] {self.owner_id}: sunscreen applied, reapply at {self._reapply_deadline.isoformat()}")
        return self._accept(previous)

    def resume(self, now: Optional[datetime] = None) -> TransitionResult:
        now = self._now(now)
        previous = self._phase
        if previous not in (TimerPhase.SUNSCREEN_APPLIED, TimerPhase.PAUSED):
            return self._reject("resume", previous)

        self._credit(now)
        self._begin_session(now)
        self._phase = TimerPhase.RUNNING
        return self._accept(previous)

    def tick(self, now: Optional[datetime] = None) -> TransitionResult:
        """Observe the clock: update totals, detect burn threshold and reapply deadline."""
        now = self._now(now)
        previous = self._phase
        self._credit(now)

        events: List[TimerEvent] = []
        events.extend(self._check_exceeded(now))

        if self._reapply_deadline is not None and now >= self._reapply_deadline:
            self._reapply_deadline = None
            events.append(TimerEvent.REAPPLY_DUE)
            logger.info(f"[TIMER] {self.owner_id}: sunscreen reapplication due")

        return TransitionResult(True, previous, self._phase, events=tuple(events))

    def reset(self, now: Optional[datetime] = None) -> TransitionResult:
        """Clear the session; the daily total is kept until local midnight."""
        now = self._now(now)
        previous = self._phase
        self._credit(now)

        self._session_start = None
        self._credited_until = None
        self._prior_elapsed = 0.0
        self._last_sunscreen = None
        self._held_elapsed = 0.0
        self._held_budget = None
        self._reapply_deadline = None
        self._phase = TimerPhase.NOT_STARTED
        return self._accept(previous)

    def cancel_reapply_countdown(self, now: Optional[datetime] = None) -> TransitionResult:
        previous = self._phase
        if self._reapply_deadline is None:
            return TransitionResult(False, previous, previous, reason="no reapply countdown active")
        self._reapply_deadline = None
        logger.debug(f"[TIMER] {self.owner_id}: reapply countdown cancelled")
        return TransitionResult(True, previous, previous)

    def update_uv(self, adjusted_uv: int, now: Optional[datetime] = None) -> TransitionResult:
        """
        Switch to a new adjusted UV index.

        Elapsed exposure is rescaled so the absorbed fraction of the burn dose is kept:
        10 minutes at UV 5 (half of a 20 minute budget) becomes 5 minutes at UV 10.

        Time spent at UV 0 absorbs no dose. The exposure held before UV dropped to 0
        is carried over to the next nonzero UV, and the zero-UV interval is dropped.
        """
        now = self._now(now)
        previous = self._phase
        self._credit(now)

        new_uv = max(0, int(adjusted_uv))
        new_ttb = time_to_burn_minutes(new_uv, self.skin_type)
        old_ttb = self._time_to_burn

        if previous in self._ACTIVE_PHASES and new_ttb != old_ttb:
            if math.isinf(new_ttb):
                self._held_elapsed = self.elapsed_seconds(now)
                self._held_budget = old_ttb
            elif math.isinf(old_ttb):
                carried = 0.0
                if self._held_budget is not None:
                    carried = self._held_elapsed * (new_ttb / self._held_budget)
                self._restart_elapsed(now, carried)
                self._held_elapsed, self._held_budget = 0.0, None
            else:
                self._restart_elapsed(now, self.elapsed_seconds(now) * (new_ttb / old_ttb))

        self._adjusted_uv = new_uv
        self._time_to_burn = new_ttb
        events = self._check_exceeded(now)
        return TransitionResult(True, previous, self._phase, events=tuple(events))

    # ==================== Internals ====================

    def _now(self, now: Optional[datetime] = None) -> datetime:
        return _aware(now if now is not None else self._clock())

    def _local_date(self, moment: datetime):
        return moment.astimezone(self.tz).date()

    def _local_midnight(self, moment: datetime) -> datetime:
        return datetime.combine(self._local_date(moment), time(0, 0), tzinfo=self.tz)

    def _begin_session(self, now: datetime) -> None:
        if self._session_start is None:
            self._session_start = now
            self._credited_until = now

    def _end_session(self, now: datetime) -> None:
        self._prior_elapsed = self.elapsed_seconds(now)
        self._session_start = None
        self._credited_until = None

    def _restart_elapsed(self, now: datetime, elapsed: float) -> None:
        if self._session_start is not None:
            self._session_start = now
        self._prior_elapsed = elapsed

    def _check_exceeded(self, now: datetime) -> List[TimerEvent]:
        if self._phase not in self._ACTIVE_PHASES or math.isinf(self._time_to_burn):
            return []
        if self.elapsed_seconds(now) < self._time_to_burn * 60.0:
            return []
        self._end_session(now)
        self._phase = TimerPhase.EXCEEDED
        logger.info(
            f"[TIMER] {self.owner_id}: burn threshold of {self._time_to_burn:.1f} min exceeded "
            f"at UV {self._adjusted_uv}"
        )
        return [TimerEvent.EXCEEDED]

    def _uncredited_seconds(self, now: datetime) -> float:
        """Active session time not yet added to the daily total, counted from local midnight."""
        if self._session_start is None:
            return 0.0
        since = max(self._credited_until or self._session_start, self._local_midnight(now))
        return max(0.0, (now - since).total_seconds())

    def _credit(self, now: datetime) -> None:
        today = self._local_date(now)
        if today != self._today:
            logger.info(f"[TIMER] {self.owner_id}: new day {today}, daily total reset")
            self._today = today
            self._today_total = 0.0

        seconds = self._uncredited_seconds(now)
        if self._session_start is not None:
            self._credited_until = now
        if seconds > 0:
            self._today_total += seconds
            self._persist_daily_total(now)

    def _restore_daily_total(self) -> None:
        if self._store is None:
            return
        try:
            record = self._store.load(self.owner_id)
        except PyMongoError as e:
            logger.warning(f"[TIMER] {self.owner_id}: daily total unavailable, starting from 0: {e}")
            return
        if record is not None and record.local_date == self._today:
            self._today_total = record.total_seconds
            logger.debug(f"[TIMER] {self.owner_id}: restored {record.total_seconds:.0f}s for {self._today}")

    def _persist_daily_total(self, now: datetime) -> None:
        if self._store is None:
            return
        try:
            self._store.save(DailyExposureRecord(
                owner_id=self.owner_id,
                local_date=self._today,
                total_seconds=self._today_total,
                updated_at=now,
            ))
        except PyMongoError as e:
            logger.warning(f"[TIMER] {self.owner_id}: daily total not saved, kept in memory: {e}")

    def _accept(self, previous: TimerPhase) -> TransitionResult:
        logger.debug(f"[TIMER] {self.owner_id}: {previous.value} -> {self._phase.value}")
        return TransitionResult(True, previous, self._phase)

    def _reject(self, operation: str, phase: TimerPhase) -> TransitionResult:
        reason = f"cannot {operation} from {phase.value}"
        logger.debug(f"[TIMER] {self.owner_id}: rejected, {reason}")
        return TransitionResult(False, phase, phase, reason=reason)


class TimerRegistry:
    """
    One ExposureTimer per owner, each with its own asyncio.Lock.

    Callers must hold lock(owner_id) around any operation on that owner's timer.
    """

    def __init__(
        self,
        clock: Optional[Callable[[], datetime]] = None,
        tz: tzinfo = timezone.utc,
        store: Optional[DailyExposureStore] = None,
    ):
        self.clock = clock
        self.tz = tz
        self.store = store
        self._timers: Dict[str, ExposureTimer] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def __contains__(self, owner_id: str) -> bool:
        return owner_id in self._timers

    def lock(self, owner_id: str) -> asyncio.Lock:
        if owner_id not in self._locks:
            self._locks[owner_id] = asyncio.Lock()
        return self._locks[owner_id]

    def get(self, owner_id: str) -> ExposureTimer:
        """Raises KeyError for an unknown owner."""
        return self._timers[owner_id]

    def get_or_create(
        self,
        owner_id: str,
        skin_type: Optional[SkinType] = None,
        tz: Optional[tzinfo] = None,
    ) -> ExposureTimer:
        timer = self._timers.get(owner_id)
        if timer is None:
            timer = ExposureTimer(
                owner_id=owner_id,
                clock=self.clock,
                tz=tz or self.tz,
                store=self.store,
                skin_type=skin_type or REFERENCE_SKIN_TYPE,
            )
            self._timers[owner_id] = timer
            logger.info(f"[TIMER] Created timer for {owner_id}")
        return timer
