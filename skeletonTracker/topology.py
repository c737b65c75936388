"""
skeletonTracker.topology

Static skeleton tables: the joints reported per skeleton and the bone pairs
drawn between them. Shared by every user and never modified at run time.
"""

from typing import Tuple

from .enums import JointKind

BonePair = Tuple[JointKind, JointKind]

# Order in which joints are reported in a Skeleton
SKELETON_JOINTS: Tuple[JointKind, ...] = (
    JointKind.HEAD,
    JointKind.NECK,
    JointKind.TORSO,
    JointKind.LEFT_SHOULDER,
    JointKind.LEFT_ELBOW,
    JointKind.LEFT_HAND,
    JointKind.RIGHT_SHOULDER,
    JointKind.RIGHT_ELBOW,
    JointKind.RIGHT_HAND,
    JointKind.LEFT_HIP,
    JointKind.LEFT_KNEE,
    JointKind.LEFT_FOOT,
    JointKind.RIGHT_HIP,
    JointKind.RIGHT_KNEE,
    JointKind.RIGHT_FOOT,
)

BONE_PAIRS: Tuple[BonePair, ...] = (
    # Head and arms
    (JointKind.HEAD, JointKind.NECK),
    (JointKind.NECK, JointKind.LEFT_SHOULDER),
    (JointKind.LEFT_SHOULDER, JointKind.LEFT_ELBOW),
    (JointKind.LEFT_ELBOW, JointKind.LEFT_HAND),
    (JointKind.NECK, JointKind.RIGHT_SHOULDER),
    (JointKind.RIGHT_SHOULDER, JointKind.RIGHT_ELBOW),
    (JointKind.RIGHT_ELBOW, JointKind.RIGHT_HAND),
    # Torso
    (JointKind.LEFT_SHOULDER, JointKind.TORSO),
    (JointKind.RIGHT_SHOULDER, JointKind.TORSO),
    # Legs
    (JointKind.TORSO, JointKind.LEFT_HIP),
    (JointKind.LEFT_HIP, JointKind.LEFT_KNEE),
    (JointKind.LEFT_KNEE, JointKind.LEFT_FOOT),
    (JointKind.TORSO, JointKind.RIGHT_HIP),
    (JointKind.RIGHT_HIP, JointKind.RIGHT_KNEE),
    (JointKind.RIGHT_KNEE, JointKind.RIGHT_FOOT),
    # Pelvis
    (JointKind.LEFT_HIP, JointKind.RIGHT_HIP),
)


def bones_touching(kind: JointKind) -> Tuple[BonePair, ...]:
    """Bone pairs that have `kind` as one of their endpoints"""
    return tuple(pair for pair in BONE_PAIRS if kind in pair)
