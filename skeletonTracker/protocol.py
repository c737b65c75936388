from dataclasses import dataclass, field
from typing import List, Dict, Union, Optional

import numpy as np

from .enums import JointKind


# Lightweight data structures for network efficiency
@dataclass
class Position:
    """3D position with reduced memory footprint via __slots__"""
    __slots__ = ("x", "y", "z")
    x: float
    y: float
    z: float

    def to_dict(self) -> Dict[str, float]:
        """Convert to dict for JSON serialization"""
        return {"x": float(self.x), "y": float(self.y), "z": float(self.z)}

    def to_list(self) -> List[float]:
        """Convert to list for compact serialization"""
        return [float(self.x), float(self.y), float(self.z)]

    def to_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=float)

    @staticmethod
    def from_dict(d: Union[Dict[str, float], List[float], tuple]) -> "Position":
        """Create from dict or list/tuple"""
        if isinstance(d, (list, tuple)):
            return Position(x=float(d[0]), y=float(d[1]), z=float(d[2]))
        return Position(x=float(d.get("x", 0.0)), y=float(d.get("y", 0.0)), z=float(d.get("z", 0.0)))


@dataclass
class Quaternion:
    """Quaternion orientation with reduced memory footprint via __slots__"""
    __slots__ = ("x", "y", "z", "w")
    x: float
    y: float
    z: float
    w: float

    def to_dict(self) -> Dict[str, float]:
        """Convert to dict for JSON serialization"""
        return {"x": float(self.x), "y": float(self.y), "z": float(self.z), "w": float(self.w)}

    def to_list(self) -> List[float]:
        """Convert to list for compact serialization"""
        return [float(self.x), float(self.y), float(self.z), float(self.w)]

    def norm(self) -> float:
        return float(np.sqrt(self.x * self.x + self.y * self.y + self.z * self.z + self.w * self.w))

    @staticmethod
    def identity() -> "Quaternion":
        return Quaternion(x=0.0, y=0.0, z=0.0, w=1.0)

    @staticmethod
    def from_dict(d: Union[Dict[str, float], List[float], tuple]) -> "Quaternion":
        """Create from dict or list/tuple"""
        if isinstance(d, (list, tuple)):
            return Quaternion(x=float(d[0]), y=float(d[1]), z=float(d[2]), w=float(d[3]))
        return Quaternion(
            x=float(d.get("x", 0.0)),
            y=float(d.get("y", 0.0)),
            z=float(d.get("z", 0.0)),
            w=float(d.get("w", 1.0))
        )


@dataclass
class JointSample:
    """Raw joint reading as reported by the tracking engine.

    position is in millimeters in the sensor's axis convention, orientation is
    a 3x3 rotation matrix whose row-major elements are the engine's m[0..8].
    Samples are fetched fresh every tick and never cached.
    """
    position: Position
    orientation: np.ndarray
    confidence: float


@dataclass
class CorrectedJoint:
    kind: JointKind
    pos: Position                 # meters, canonical frame
    ori: Quaternion               # unit quaternion
    conf: float                   # confidence 0..1, copied from the sample

    def to_dict(self):
        return {
            "joint": self.kind.frame_name,
            "pos": self.pos.to_dict(),
            "ori": self.ori.to_dict(),
            "conf": self.conf
        }

    @staticmethod
    def from_dict(d):
        return CorrectedJoint(
            kind=JointKind.from_frame_name(d["joint"]),
            pos=Position.from_dict(d["pos"]),
            ori=Quaternion.from_dict(d["ori"]),
            conf=float(d["conf"])
        )


@dataclass
class JointTransform:
    """One joint expressed as a transform-tree edge parent -> child"""
    parent_frame: str
    child_frame: str
    timestamp: float
    translation: Position
    rotation: Quaternion

    def to_dict(self):
        return {
            "parent": self.parent_frame,
            "child": self.child_frame,
            "timestamp": self.timestamp,
            "translation": self.translation.to_dict(),
            "rotation": self.rotation.to_dict()
        }

    @staticmethod
    def from_dict(d):
        return JointTransform(
            parent_frame=d["parent"],
            child_frame=d["child"],
            timestamp=float(d["timestamp"]),
            translation=Position.from_dict(d["translation"]),
            rotation=Quaternion.from_dict(d["rotation"])
        )


@dataclass
class Skeleton:
    user_id: int
    joints: Dict[JointKind, CorrectedJoint] = field(default_factory=dict)

    def get_joint(self, kind: JointKind) -> Optional[CorrectedJoint]:
        return self.joints.get(kind)

    def transforms(self, parent_frame: str, timestamp: float) -> List[JointTransform]:
        """Transform-tree edges for every joint; child frames carry the user id
        so several skeletons can share one tree."""
        return [
            JointTransform(
                parent_frame=parent_frame,
                child_frame=f"{kind.frame_name}_{self.user_id}",
                timestamp=timestamp,
                translation=joint.pos,
                rotation=joint.ori
            )
            for kind, joint in self.joints.items()
        ]

    def to_dict(self):
        return {
            "userid": self.user_id,
            "joints": [j.to_dict() for j in self.joints.values()]
        }

    @staticmethod
    def from_dict(d):
        joints = [CorrectedJoint.from_dict(j) for j in d["joints"]]
        return Skeleton(user_id=int(d["userid"]), joints={j.kind: j for j in joints})


@dataclass
class Bone:
    """Segment between two confidently tracked joints of one user"""
    user_id: int
    start: JointKind
    end: JointKind
    endpoint_a: Position
    endpoint_b: Position

    def length(self) -> float:
        return float(np.linalg.norm(self.endpoint_b.to_array() - self.endpoint_a.to_array()))

    def to_dict(self):
        return {
            "userid": self.user_id,
            "joints": [self.start.frame_name, self.end.frame_name],
            "points": [self.endpoint_a.to_list(), self.endpoint_b.to_list()]
        }

    @staticmethod
    def from_dict(d):
        start, end = d["joints"]
        a, b = d["points"]
        return Bone(
            user_id=int(d["userid"]),
            start=JointKind.from_frame_name(start),
            end=JointKind.from_frame_name(end),
            endpoint_a=Position.from_dict(a),
            endpoint_b=Position.from_dict(b)
        )


@dataclass
class Frame:
    """Complete output of one tick. Built fresh each tick and not retained."""
    timestamp: float
    skeletons: List[Skeleton] = field(default_factory=list)
    bones: List[Bone] = field(default_factory=list)
    frame_id: str = ""        # frame the skeletons are published in
    bones_frame_id: str = ""  # frame the bones and joint transforms are expressed in

    def has_skeletons(self) -> bool:
        return len(self.skeletons) > 0

    def user_ids(self) -> List[int]:
        return [s.user_id for s in self.skeletons]

    def get_skeleton(self, user_id: int) -> Optional[Skeleton]:
        for skeleton in self.skeletons:
            if skeleton.user_id == user_id:
                return skeleton
        return None

    def transforms(self) -> List[JointTransform]:
        out = []
        for skeleton in self.skeletons:
            out.extend(skeleton.transforms(self.bones_frame_id, self.timestamp))
        return out

    def skeletons_dict(self):
        return {
            "timestamp": self.timestamp,
            "frame_id": self.frame_id,
            "skeletons": [s.to_dict() for s in self.skeletons]
        }

    def bones_dict(self):
        return {
            "timestamp": self.timestamp,
            "frame_id": self.bones_frame_id,
            "bones": [b.to_dict() for b in self.bones]
        }

    def set_bones(self, bones_data: dict):
        """Attach the bones message that belongs to this frame"""
        self.bones = [Bone.from_dict(b) for b in bones_data.get("bones", [])]
        self.bones_frame_id = bones_data.get("frame_id", "")

    @staticmethod
    def from_messages(skeletons_data: dict, bones_data: Optional[dict] = None) -> "Frame":
        """Reassemble a frame from the separate skeletons and bones messages"""
        frame = Frame(
            timestamp=float(skeletons_data["timestamp"]),
            skeletons=[Skeleton.from_dict(s) for s in skeletons_data.get("skeletons", [])],
            frame_id=skeletons_data.get("frame_id", "")
        )
        if bones_data is not None:
            frame.set_bones(bones_data)
        return frame
