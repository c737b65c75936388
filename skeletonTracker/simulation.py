"""
skeletonTracker.simulation

Deterministic stand-in for a skeleton tracking engine. Users appear, go
through pose detection and calibration (optionally failing a few times) and
are then tracked with a standing pose that sways slowly. Used by the test
suite and to run the server without a sensor.
"""

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from .engine import (
    TrackingEngine, EngineInitError, LifecycleEvent,
    NewUser, LostUser, CalibrationStart, CalibrationEnd, PoseDetected
)
from .enums import JointKind
from .protocol import JointSample, Position

logger = logging.getLogger(__name__)

# Standing pose in sensor millimeters (X right, Y up, Z away from the sensor),
# relative to the user's torso
REST_POSE_MM: Dict[JointKind, Tuple[float, float, float]] = {
    JointKind.HEAD: (0.0, 450.0, 0.0),
    JointKind.NECK: (0.0, 250.0, 0.0),
    JointKind.TORSO: (0.0, 0.0, 0.0),
    JointKind.LEFT_SHOULDER: (-180.0, 230.0, 0.0),
    JointKind.LEFT_ELBOW: (-210.0, -50.0, 10.0),
    JointKind.LEFT_HAND: (-220.0, -300.0, -20.0),
    JointKind.RIGHT_SHOULDER: (180.0, 230.0, 0.0),
    JointKind.RIGHT_ELBOW: (210.0, -50.0, 10.0),
    JointKind.RIGHT_HAND: (220.0, -300.0, -20.0),
    JointKind.LEFT_HIP: (-100.0, -250.0, 0.0),
    JointKind.LEFT_KNEE: (-110.0, -680.0, 10.0),
    JointKind.LEFT_FOOT: (-110.0, -1080.0, 20.0),
    JointKind.RIGHT_HIP: (100.0, -250.0, 0.0),
    JointKind.RIGHT_KNEE: (110.0, -680.0, 10.0),
    JointKind.RIGHT_FOOT: (110.0, -1080.0, 20.0),
}

SWAY_AMPLITUDE_MM = 40.0
SWAY_YAW_RAD = 0.15
SWAY_RATE = 0.05  # radians of phase per refresh


@dataclass
class SimulatedUser:
    user_id: int
    torso_mm: Tuple[float, float, float]
    calibration_failures: int = 0     # failures left before calibration succeeds
    announced: bool = False
    removed: bool = False
    pose_detection: bool = False
    pose_seen: bool = False
    calibration_requested: bool = False
    calibrating: bool = False
    tracking: bool = False
    confidence: Dict[JointKind, float] = field(default_factory=dict)


class SimulatedEngine(TrackingEngine):
    """
    Scripted tracking engine.

    Args:
        needs_pose: users must show the calibration pose before calibrating
        pose_supported: pose detection capability available (open() fails when
            a pose is needed but unsupported)
        calibration_failures: default number of failed calibrations per user
        frame_period: seconds a refresh blocks, emulating the sensor rate
        calibration_pose: pose name reported in PoseDetected events
    """

    def __init__(self, needs_pose: bool = False, pose_supported: bool = True,
                 calibration_failures: int = 0, frame_period: float = 0.0,
                 calibration_pose: str = "Psi"):
        self._needs_pose = needs_pose
        self.pose_supported = pose_supported
        self.default_calibration_failures = calibration_failures
        self.frame_period = frame_period
        self._calibration_pose = calibration_pose
        self.frame_number = 0
        self.opened = False
        self.users: Dict[int, SimulatedUser] = {}
        self.commands: List[tuple] = []  # (command, user_id, ...) in issue order
        self._next_id = 1

    # ------------------------------------------------------------------
    # Engine lifecycle
    # ------------------------------------------------------------------

    def name(self) -> str:
        return "simulated"

    def open(self) -> None:
        if self._needs_pose and not self.pose_supported:
            raise EngineInitError("Pose required, but not supported")
        self.opened = True
        logger.info("Simulated engine ready (pose required: %s)", self._needs_pose)

    def close(self) -> None:
        self.opened = False

    @property
    def needs_pose(self) -> bool:
        return self._needs_pose

    @property
    def calibration_pose(self) -> str:
        return self._calibration_pose if self._needs_pose else ""

    # ------------------------------------------------------------------
    # Scenario control
    # ------------------------------------------------------------------

    def add_user(self, user_id: Optional[int] = None, calibration_failures: Optional[int] = None,
                 torso_mm: Optional[Tuple[float, float, float]] = None) -> int:
        """Schedule a user to appear on the next refresh; returns its id"""
        if user_id is None:
            while self._next_id in self.users:
                self._next_id += 1
            user_id = self._next_id
            self._next_id += 1
        if torso_mm is None:
            # line users up side by side, 2.5 m from the sensor
            torso_mm = (-600.0 + 600.0 * (len(self.users) % 3), 0.0, 2500.0)
        if calibration_failures is None:
            calibration_failures = self.default_calibration_failures
        self.users[user_id] = SimulatedUser(user_id=user_id, torso_mm=torso_mm,
                                            calibration_failures=calibration_failures)
        return user_id

    def remove_user(self, user_id: int):
        """User leaves the scene; reported as lost on the next refresh"""
        if user_id in self.users:
            self.users[user_id].removed = True

    def set_confidence(self, user_id: int, kind: JointKind, confidence: float):
        self.users[user_id].confidence[kind] = confidence

    # ------------------------------------------------------------------
    # Engine queries
    # ------------------------------------------------------------------

    def refresh(self, timeout: float) -> List[LifecycleEvent]:
        if self.frame_period > 0:
            time.sleep(min(self.frame_period, timeout))
        self.frame_number += 1

        events: List[LifecycleEvent] = []
        for user in list(self.users.values()):
            if user.removed:
                if user.announced:
                    events.append(LostUser(user.user_id))
                del self.users[user.user_id]
                continue

            if not user.announced:
                user.announced = True
                events.append(NewUser(user.user_id))
                continue

            if user.pose_detection and not user.pose_seen:
                user.pose_seen = True
                events.append(PoseDetected(user.user_id, self._calibration_pose))
            elif user.calibrating:
                user.calibrating = False
                success = user.calibration_failures == 0
                if not success:
                    user.calibration_failures -= 1
                events.append(CalibrationEnd(user.user_id, success))
            elif user.calibration_requested:
                user.calibration_requested = False
                user.calibrating = True
                events.append(CalibrationStart(user.user_id))
        return events

    def list_users(self) -> List[int]:
        return [u.user_id for u in self.users.values() if u.announced]

    def is_tracking(self, user_id: int) -> bool:
        user = self.users.get(user_id)
        return user is not None and user.tracking

    def get_joint_sample(self, user_id: int, kind: JointKind) -> JointSample:
        user = self.users.get(user_id)
        if user is None or not user.tracking:
            return JointSample(position=Position(0.0, 0.0, 0.0), orientation=np.eye(3), confidence=0.0)

        phase = self.frame_number * SWAY_RATE
        yaw = SWAY_YAW_RAD * math.sin(phase)
        c, s = math.cos(yaw), math.sin(yaw)
        rotation = np.array([[c, 0.0, s], [0.0, 1.0, 0.0], [-s, 0.0, c]])

        offset = rotation @ np.array(REST_POSE_MM[kind])
        tx, ty, tz = user.torso_mm
        position = Position(
            x=tx + SWAY_AMPLITUDE_MM * math.sin(phase) + offset[0],
            y=ty + offset[1],
            z=tz + offset[2]
        )
        return JointSample(position=position, orientation=rotation,
                           confidence=user.confidence.get(kind, 1.0))

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def start_pose_detection(self, pose: str, user_id: int) -> None:
        self.commands.append(("start_pose_detection", user_id, pose))
        user = self.users.get(user_id)
        if user is not None:
            user.pose_detection = True
            user.pose_seen = False

    def stop_pose_detection(self, user_id: int) -> None:
        self.commands.append(("stop_pose_detection", user_id))
        user = self.users.get(user_id)
        if user is not None:
            user.pose_detection = False

    def request_calibration(self, user_id: int, force: bool) -> None:
        self.commands.append(("request_calibration", user_id, force))
        user = self.users.get(user_id)
        if user is None:
            return
        if (user.calibrating or user.calibration_requested) and not force:
            logger.debug("Calibration request for user %d rejected, already calibrating", user_id)
            return
        user.calibrating = False
        user.calibration_requested = True
        user.tracking = False

    def start_tracking(self, user_id: int) -> None:
        self.commands.append(("start_tracking", user_id))
        user = self.users.get(user_id)
        if user is not None:
            user.tracking = True
