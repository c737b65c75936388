"""
skeletonTracker.lifecycle

Per-user calibration/tracking state machine driven by engine lifecycle events.

    (none)        --NewUser-->               AWAITING_POSE | CALIBRATING
    AWAITING_POSE --PoseDetected-->          CALIBRATING
    CALIBRATING   --CalibrationStart-->      CALIBRATING
    CALIBRATING   --CalibrationEnd(ok)-->    TRACKING
    CALIBRATING   --CalibrationEnd(failed)-> AWAITING_POSE | CALIBRATING (retry)
    any           --LostUser-->              (removed)

Calibration failures are retried without limit and without backoff so a user
whose calibration fails keeps being re-queued until it succeeds or the user
is lost.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from .engine import (
    TrackingEngine, LifecycleEvent, NewUser, LostUser,
    CalibrationStart, CalibrationEnd, PoseDetected
)
from .enums import UserState, USER_STATE_LABELS

logger = logging.getLogger(__name__)


@dataclass
class UserEntry:
    """Lifecycle record of one known user"""
    user_id: int
    state: UserState = UserState.DETECTED
    calibration_failures: int = 0   # consecutive, cleared on success
    calibration_attempts: int = 0


class UserLifecycle:
    """
    Owns the state of every user the engine currently knows about.

    Args:
        engine: engine that receives pose detection / calibration / tracking commands
        retry_warning_interval: log a warning every N consecutive calibration
            failures of one user (0 disables the warning). Retries never stop.
    """

    def __init__(self, engine: TrackingEngine, retry_warning_interval: int = 10):
        self.engine = engine
        self.retry_warning_interval = retry_warning_interval
        self._users: Dict[int, UserEntry] = {}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def state_of(self, user_id: int) -> UserState:
        entry = self._users.get(user_id)
        return entry.state if entry is not None else UserState.LOST

    def is_tracking(self, user_id: int) -> bool:
        return self.state_of(user_id) == UserState.TRACKING

    def entry(self, user_id: int) -> Optional[UserEntry]:
        return self._users.get(user_id)

    def known_users(self) -> List[int]:
        return list(self._users.keys())

    def tracked_users(self) -> List[int]:
        return [uid for uid, e in self._users.items() if e.state == UserState.TRACKING]

    def __len__(self):
        return len(self._users)

    # ------------------------------------------------------------------
    # Event dispatch
    # ------------------------------------------------------------------

    def handle(self, event: LifecycleEvent) -> UserState:
        """Apply one lifecycle event and return the user's resulting state"""
        if isinstance(event, NewUser):
            self._on_new_user(event)
        elif isinstance(event, LostUser):
            self._on_lost_user(event)
        elif isinstance(event, CalibrationStart):
            self._on_calibration_start(event)
        elif isinstance(event, CalibrationEnd):
            self._on_calibration_end(event)
        elif isinstance(event, PoseDetected):
            self._on_pose_detected(event)
        else:
            raise TypeError(f"Unknown lifecycle event: {event!r}")
        return self.state_of(event.user_id)

    def handle_all(self, events: List[LifecycleEvent]):
        for event in events:
            self.handle(event)

    def _on_new_user(self, event: NewUser):
        if event.user_id in self._users:
            logger.info("User %d reported again, resetting its state", event.user_id)
        logger.info("New user %d", event.user_id)
        entry = UserEntry(user_id=event.user_id)
        self._users[event.user_id] = entry
        self._begin_calibration(entry)

    def _on_lost_user(self, event: LostUser):
        entry = self._users.pop(event.user_id, None)
        if entry is None:
            logger.debug("Lost unknown user %d", event.user_id)
            return
        logger.info("Lost user %d (was %s)", event.user_id, USER_STATE_LABELS[entry.state])

    def _on_pose_detected(self, event: PoseDetected):
        entry = self._expect(event, UserState.AWAITING_POSE)
        if entry is None:
            return
        logger.info("Pose %s detected for user %d", event.pose or "(unnamed)", event.user_id)
        self.engine.stop_pose_detection(event.user_id)
        self._request_calibration(entry)

    def _on_calibration_start(self, event: CalibrationStart):
        if self._expect(event, UserState.CALIBRATING) is None:
            return
        logger.info("Calibration started for user %d", event.user_id)

    def _on_calibration_end(self, event: CalibrationEnd):
        entry = self._expect(event, UserState.CALIBRATING)
        if entry is None:
            return

        if event.success:
            logger.info("Calibration complete, start tracking user %d", event.user_id)
            entry.calibration_failures = 0
            self.engine.start_tracking(event.user_id)
            self._set_state(entry, UserState.TRACKING)
            return

        entry.calibration_failures += 1
        logger.info("Calibration failed for user %d", event.user_id)
        if (self.retry_warning_interval > 0
                and entry.calibration_failures % self.retry_warning_interval == 0):
            logger.warning("User %d failed calibration %d times in a row, still retrying",
                           event.user_id, entry.calibration_failures)
        self._begin_calibration(entry)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _begin_calibration(self, entry: UserEntry):
        """Start (or restart) the path towards calibration for a user"""
        if self.engine.needs_pose:
            self.engine.start_pose_detection(self.engine.calibration_pose, entry.user_id)
            self._set_state(entry, UserState.AWAITING_POSE)
        else:
            self._request_calibration(entry)

    def _request_calibration(self, entry: UserEntry):
        # force so a user already in calibration is re-queued instead of rejected
        self.engine.request_calibration(entry.user_id, force=True)
        entry.calibration_attempts += 1
        self._set_state(entry, UserState.CALIBRATING)

    def _expect(self, event: LifecycleEvent, state: UserState) -> Optional[UserEntry]:
        entry = self._users.get(event.user_id)
        if entry is None or entry.state != state:
            logger.debug("Ignoring %s for user %d in state %s", type(event).__name__,
                         event.user_id, USER_STATE_LABELS[self.state_of(event.user_id)])
            return None
        return entry

    @staticmethod
    def _set_state(entry: UserEntry, state: UserState):
        if entry.state != state:
            logger.debug("User %d: %s -> %s", entry.user_id,
                         USER_STATE_LABELS[entry.state], USER_STATE_LABELS[state])
        entry.state = state
