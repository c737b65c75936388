"""
skeletonTracker

Per-user skeleton tracking lifecycle, joint transform correction and frame
assembly for depth-sensor skeleton tracking engines.

This file avoids importing optional SDKs (ZED) so that the package can be
imported where those are not installed. Import skeletonTracker.zedEngine
lazily from application entrypoints.
"""

from .enums import JointKind, UserState
from .protocol import Frame, Skeleton, Bone, CorrectedJoint, JointSample, JointTransform, Position, Quaternion
from .topology import SKELETON_JOINTS, BONE_PAIRS
from .config import TrackerConfig
from .tracker import SkeletonTracker

__all__ = [
    'JointKind', 'UserState',
    'Frame', 'Skeleton', 'Bone', 'CorrectedJoint', 'JointSample', 'JointTransform', 'Position', 'Quaternion',
    'SKELETON_JOINTS', 'BONE_PAIRS',
    'TrackerConfig', 'SkeletonTracker'
]
