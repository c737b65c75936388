from enum import Enum
from typing import Dict


class JointKind(Enum):
    """Tracking engine skeleton joint ids (full-body profile, 15 joints)"""
    HEAD = 1
    NECK = 2
    TORSO = 3
    LEFT_SHOULDER = 6
    LEFT_ELBOW = 7
    LEFT_HAND = 9
    RIGHT_SHOULDER = 12
    RIGHT_ELBOW = 13
    RIGHT_HAND = 15
    LEFT_HIP = 17
    LEFT_KNEE = 18
    LEFT_FOOT = 20
    RIGHT_HIP = 21
    RIGHT_KNEE = 22
    RIGHT_FOOT = 24

    @property
    def frame_name(self) -> str:
        """Transform-tree child frame name, e.g. 'left_hand'"""
        return self.name.lower()

    @staticmethod
    def from_frame_name(name: str) -> "JointKind":
        return JointKind[name.upper()]


class UserState(Enum):
    """Calibration/tracking state of one engine user"""
    DETECTED = "detected"
    AWAITING_POSE = "awaiting_pose"
    CALIBRATING = "calibrating"
    TRACKING = "tracking"
    LOST = "lost"  # reported for ids without an entry, never stored


class MessageType(Enum):
    """Wire message types broadcast by the server"""
    SKELETONS = "skeletons"
    BONES = "bones"
    TRANSFORMS = "transforms"


# Readable labels for log output
USER_STATE_LABELS: Dict[UserState, str] = {
    UserState.DETECTED: "Detected",
    UserState.AWAITING_POSE: "AwaitingPose",
    UserState.CALIBRATING: "Calibrating",
    UserState.TRACKING: "Tracking",
    UserState.LOST: "Lost",
}


class Body34Joint(Enum):
    """ZED SDK BODY_34 keypoint indices used by the ZED engine adapter"""
    PELVIS = 0
    NAVAL_SPINE = 1
    CHEST_SPINE = 2
    NECK = 3
    LEFT_SHOULDER = 5
    LEFT_ELBOW = 6
    LEFT_HAND = 8
    RIGHT_SHOULDER = 12
    RIGHT_ELBOW = 13
    RIGHT_HAND = 15
    LEFT_HIP = 18
    LEFT_KNEE = 19
    LEFT_FOOT = 21
    RIGHT_HIP = 22
    RIGHT_KNEE = 23
    RIGHT_FOOT = 25
    HEAD = 26


# ZED BODY_34 keypoint feeding each engine joint
BODY34_FOR_JOINT: Dict[JointKind, Body34Joint] = {
    JointKind.HEAD: Body34Joint.HEAD,
    JointKind.NECK: Body34Joint.NECK,
    JointKind.TORSO: Body34Joint.NAVAL_SPINE,
    JointKind.LEFT_SHOULDER: Body34Joint.LEFT_SHOULDER,
    JointKind.LEFT_ELBOW: Body34Joint.LEFT_ELBOW,
    JointKind.LEFT_HAND: Body34Joint.LEFT_HAND,
    JointKind.RIGHT_SHOULDER: Body34Joint.RIGHT_SHOULDER,
    JointKind.RIGHT_ELBOW: Body34Joint.RIGHT_ELBOW,
    JointKind.RIGHT_HAND: Body34Joint.RIGHT_HAND,
    JointKind.LEFT_HIP: Body34Joint.LEFT_HIP,
    JointKind.LEFT_KNEE: Body34Joint.LEFT_KNEE,
    JointKind.LEFT_FOOT: Body34Joint.LEFT_FOOT,
    JointKind.RIGHT_HIP: Body34Joint.RIGHT_HIP,
    JointKind.RIGHT_KNEE: Body34Joint.RIGHT_KNEE,
    JointKind.RIGHT_FOOT: Body34Joint.RIGHT_FOOT,
}
