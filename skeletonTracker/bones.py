"""
skeletonTracker.bones

Bone segments between confidently tracked joints of one user.
"""

from typing import List, Sequence

from .engine import TrackingEngine
from .protocol import Bone
from .topology import BONE_PAIRS, BonePair
from .transform import canonical_position

DEFAULT_CONFIDENCE_THRESHOLD = 0.5


def assemble_bones(engine: TrackingEngine, user_id: int,
                   pairs: Sequence[BonePair] = BONE_PAIRS,
                   threshold: float = DEFAULT_CONFIDENCE_THRESHOLD) -> List[Bone]:
    """Bones of one user whose two endpoints are both confidently tracked.

    A pair with either endpoint below `threshold` is skipped for this tick;
    the other pairs are unaffected. Output follows the order of `pairs`.
    """
    bones = []
    for start, end in pairs:
        a = engine.get_joint_sample(user_id, start)
        b = engine.get_joint_sample(user_id, end)
        if a.confidence < threshold or b.confidence < threshold:
            continue
        bones.append(Bone(
            user_id=user_id,
            start=start,
            end=end,
            endpoint_a=canonical_position(a.position),
            endpoint_b=canonical_position(b.position)
        ))
    return bones
