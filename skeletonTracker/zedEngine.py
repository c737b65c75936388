#!/usr/bin/env python3
"""
ZED SDK tracking engine adapter.

Maps ZED body tracking (BODY_34) onto the engine interface. The ZED SDK has
no explicit calibration step, so lifecycle events are synthesized from body
ids and tracking states:

    new body id                      -> NewUser
    first OK state after a request   -> CalibrationStart, CalibrationEnd(success=True)
    body id gone / TERMINATE         -> LostUser

Positions are requested in millimeters with Y up, the convention the
transform corrector expects. Imports pyzed at module level; import this
module only when the ZED engine is selected.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Set

import numpy as np
import pyzed.sl as sl

from .engine import (
    TrackingEngine, EngineInitError, LifecycleEvent,
    NewUser, LostUser, CalibrationStart, CalibrationEnd
)
from .enums import JointKind, BODY34_FOR_JOINT
from .protocol import JointSample, Position, Quaternion
from .transform import quaternion_to_matrix

logger = logging.getLogger(__name__)

RESOLUTIONS = {
    0: sl.RESOLUTION.HD720,   # 1280x720
    1: sl.RESOLUTION.HD1080,  # 1920x1080
    2: sl.RESOLUTION.VGA      # 672x376
}


@dataclass
class ZedBody:
    """Latest per-body data cached from the last refresh"""
    keypoints: np.ndarray
    confidences: np.ndarray
    orientations: Optional[np.ndarray]
    tracking_ok: bool
    calibration_requested: bool = False
    tracking: bool = False


def keypoint_confidence(value) -> float:
    """ZED reports keypoint confidence in [0, 100] (NaN when unknown)"""
    value = float(value)
    if math.isnan(value):
        return 0.0
    return min(1.0, max(0.0, value / 100.0))


class ZedTrackingEngine(TrackingEngine):
    """Single ZED camera body tracking"""

    def __init__(self, camera_resolution: int = 2, camera_fps: int = 30,
                 detection_confidence: int = 40, max_range: float = 10.0):
        self.camera_resolution = RESOLUTIONS.get(camera_resolution, sl.RESOLUTION.VGA)
        self.camera_fps = camera_fps
        self.detection_confidence = detection_confidence
        self.max_range = max_range
        self.camera: Optional[sl.Camera] = None
        self.bodies = sl.Bodies()
        self.runtime_params = sl.RuntimeParameters()
        self.body_runtime_params = sl.BodyTrackingRuntimeParameters()
        self._bodies: Dict[int, ZedBody] = {}

    def name(self) -> str:
        return "zed"

    def open(self) -> None:
        self.camera = sl.Camera()

        init_params = sl.InitParameters()
        init_params.camera_resolution = self.camera_resolution
        init_params.camera_fps = self.camera_fps
        init_params.depth_mode = sl.DEPTH_MODE.NEURAL
        init_params.coordinate_units = sl.UNIT.MILLIMETER
        init_params.coordinate_system = sl.COORDINATE_SYSTEM.LEFT_HANDED_Y_UP

        status = self.camera.open(init_params)
        if status != sl.ERROR_CODE.SUCCESS:
            self.camera = None
            raise EngineInitError(f"Failed to open camera: {status}")

        tracking_params = sl.PositionalTrackingParameters()
        tracking_params.set_as_static = True  # Camera is static, improves tracking stability
        status = self.camera.enable_positional_tracking(tracking_params)
        if status != sl.ERROR_CODE.SUCCESS:
            self.close()
            raise EngineInitError(f"Failed to enable positional tracking: {status}")

        body_params = sl.BodyTrackingParameters()
        body_params.detection_model = sl.BODY_TRACKING_MODEL.HUMAN_BODY_MEDIUM
        body_params.body_format = sl.BODY_FORMAT.BODY_34
        body_params.enable_body_fitting = True  # required for per-joint orientations
        body_params.enable_tracking = True
        body_params.max_range = self.max_range
        status = self.camera.enable_body_tracking(body_params)
        if status != sl.ERROR_CODE.SUCCESS:
            self.close()
            raise EngineInitError(f"Failed to enable body tracking: {status}")

        self.body_runtime_params.detection_confidence_threshold = self.detection_confidence
        logger.info("ZED camera initialized (BODY_34, %d fps)", self.camera_fps)

    def close(self) -> None:
        if self.camera is not None:
            self.camera.disable_body_tracking()
            self.camera.disable_positional_tracking()
            self.camera.close()
            self.camera = None

    @property
    def needs_pose(self) -> bool:
        return False

    def refresh(self, timeout: float) -> List[LifecycleEvent]:
        # grab() blocks until the next camera frame; timeout is bounded by the camera rate
        if self.camera.grab(self.runtime_params) != sl.ERROR_CODE.SUCCESS:
            return []
        self.camera.retrieve_bodies(self.bodies, self.body_runtime_params)

        events: List[LifecycleEvent] = []
        seen: Set[int] = set()
        for person in self.bodies.body_list:
            if person.tracking_state == sl.OBJECT_TRACKING_STATE.TERMINATE:
                continue
            seen.add(person.id)
            tracking_ok = person.tracking_state == sl.OBJECT_TRACKING_STATE.OK
            orientations = getattr(person, 'local_orientation_per_joint', None)

            body = self._bodies.get(person.id)
            if body is None:
                body = ZedBody(keypoints=np.zeros((34, 3)), confidences=np.zeros(34),
                               orientations=None, tracking_ok=False)
                self._bodies[person.id] = body
                events.append(NewUser(person.id))

            body.keypoints = np.asarray(person.keypoint, dtype=float)
            body.confidences = np.asarray(person.keypoint_confidence, dtype=float)
            body.orientations = np.asarray(orientations, dtype=float) if orientations is not None else None
            body.tracking_ok = tracking_ok

            if body.calibration_requested and tracking_ok:
                body.calibration_requested = False
                events.append(CalibrationStart(person.id))
                events.append(CalibrationEnd(person.id, True))

        for user_id in [uid for uid in self._bodies if uid not in seen]:
            del self._bodies[user_id]
            events.append(LostUser(user_id))
        return events

    def list_users(self) -> List[int]:
        return list(self._bodies.keys())

    def is_tracking(self, user_id: int) -> bool:
        body = self._bodies.get(user_id)
        return body is not None and body.tracking and body.tracking_ok

    def get_joint_sample(self, user_id: int, kind: JointKind) -> JointSample:
        body = self._bodies.get(user_id)
        index = BODY34_FOR_JOINT[kind].value
        if body is None or index >= len(body.keypoints):
            return JointSample(position=Position(0.0, 0.0, 0.0), orientation=np.eye(3), confidence=0.0)

        x, y, z = body.keypoints[index]
        confidence = keypoint_confidence(body.confidences[index]) if index < len(body.confidences) else 0.0
        if not np.isfinite([x, y, z]).all():
            return JointSample(position=Position(0.0, 0.0, 0.0), orientation=np.eye(3), confidence=0.0)

        rotation = np.eye(3)
        if body.orientations is not None and index < len(body.orientations):
            qx, qy, qz, qw = body.orientations[index]
            if np.isfinite([qx, qy, qz, qw]).all():
                rotation = quaternion_to_matrix(Quaternion(x=qx, y=qy, z=qz, w=qw))
        return JointSample(position=Position(float(x), float(y), float(z)),
                           orientation=rotation, confidence=confidence)

    # ZED tracks every detected body; pose detection does not apply and
    # calibration completes as soon as the body is tracked

    def start_pose_detection(self, pose: str, user_id: int) -> None:
        logger.debug("Pose detection not used by the ZED engine (user %d)", user_id)

    def stop_pose_detection(self, user_id: int) -> None:
        pass

    def request_calibration(self, user_id: int, force: bool) -> None:
        body = self._bodies.get(user_id)
        if body is not None:
            body.calibration_requested = True
            body.tracking = False

    def start_tracking(self, user_id: int) -> None:
        body = self._bodies.get(user_id)
        if body is not None:
            body.tracking = True
