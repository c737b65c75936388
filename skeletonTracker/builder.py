"""
skeletonTracker.builder

Assembles one Frame per tick from the engine's current snapshot.
"""

import logging
from typing import Sequence

from .bones import assemble_bones, DEFAULT_CONFIDENCE_THRESHOLD
from .engine import TrackingEngine
from .enums import JointKind
from .lifecycle import UserLifecycle
from .protocol import Frame, Skeleton
from .topology import SKELETON_JOINTS, BONE_PAIRS, BonePair
from .transform import correct_joint

logger = logging.getLogger(__name__)


class SkeletonFrameBuilder:
    """Builds skeletons and bones for every user in the TRACKING state"""

    def __init__(self, engine: TrackingEngine, lifecycle: UserLifecycle,
                 confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
                 max_users: int = 15,
                 joints: Sequence[JointKind] = SKELETON_JOINTS,
                 bone_pairs: Sequence[BonePair] = BONE_PAIRS,
                 frame_id: str = "",
                 bones_frame_id: str = ""):
        self.engine = engine
        self.lifecycle = lifecycle
        self.confidence_threshold = confidence_threshold
        self.max_users = max_users
        self.joints = tuple(joints)
        self.bone_pairs = tuple(bone_pairs)
        self.frame_id = frame_id
        self.bones_frame_id = bones_frame_id

    def build_skeleton(self, user_id: int) -> Skeleton:
        skeleton = Skeleton(user_id=user_id)
        for kind in self.joints:
            sample = self.engine.get_joint_sample(user_id, kind)
            skeleton.joints[kind] = correct_joint(kind, sample)
        return skeleton

    def build(self, timestamp: float) -> Frame:
        """Frame for the current engine snapshot (may hold no skeletons)"""
        frame = Frame(timestamp=timestamp, frame_id=self.frame_id,
                      bones_frame_id=self.bones_frame_id)

        users = self.engine.list_users()
        if len(users) > self.max_users:
            logger.warning("Engine reports %d users, only the first %d are processed",
                           len(users), self.max_users)
            users = users[:self.max_users]

        for user_id in users:
            # both the state machine and the engine must agree the user is tracked
            if not self.lifecycle.is_tracking(user_id):
                continue
            if not self.engine.is_tracking(user_id):
                continue
            frame.bones.extend(assemble_bones(self.engine, user_id, self.bone_pairs,
                                              self.confidence_threshold))
            frame.skeletons.append(self.build_skeleton(user_id))

        logger.debug("users_count: %d", len(frame.skeletons))
        return frame
