"""
skeletonTracker.transform

Converts raw engine joint samples into the canonical output frame:
meters, with the sensor's vertical axis inverted, and unit quaternions.
"""

import math

import numpy as np

from .enums import JointKind
from .protocol import Position, Quaternion, JointSample, CorrectedJoint

MM_PER_METER = 1000.0

# Flat row-major indices negated by the orientation correction
_FLIPPED_ELEMENTS = (0, 1, 2, 6, 7, 8)


def to_canonical_position(x: float, y: float, z: float) -> Position:
    """Sensor millimeters -> canonical meters with Y inverted"""
    return Position(x=x / MM_PER_METER, y=-y / MM_PER_METER, z=z / MM_PER_METER)


def canonical_position(position: Position) -> Position:
    return to_canonical_position(position.x, position.y, position.z)


def correct_orientation(matrix) -> np.ndarray:
    """Negate elements m[0..2] and m[6..8] of the row-major engine matrix.

    Only these two element triplets are flipped, the middle one is left as is.
    Returns a new 3x3 array; applying it twice gives back the input.
    """
    m = np.array(matrix, dtype=float).reshape(9)
    m[list(_FLIPPED_ELEMENTS)] *= -1.0
    return m.reshape(3, 3)


def matrix_to_quaternion(rotation_matrix) -> Quaternion:
    """Convert 3x3 rotation matrix to a unit quaternion"""
    R = np.asarray(rotation_matrix, dtype=float).reshape(3, 3)
    trace = R[0][0] + R[1][1] + R[2][2]

    if trace > 0:
        s = math.sqrt(trace + 1.0) * 2  # s = 4 * qw
        w = 0.25 * s
        x = (R[2][1] - R[1][2]) / s
        y = (R[0][2] - R[2][0]) / s
        z = (R[1][0] - R[0][1]) / s
    elif R[0][0] > R[1][1] and R[0][0] > R[2][2]:
        s = math.sqrt(max(0.0, 1.0 + R[0][0] - R[1][1] - R[2][2])) * 2  # s = 4 * qx
        if s == 0.0:
            return Quaternion.identity()
        w = (R[2][1] - R[1][2]) / s
        x = 0.25 * s
        y = (R[0][1] + R[1][0]) / s
        z = (R[0][2] + R[2][0]) / s
    elif R[1][1] > R[2][2]:
        s = math.sqrt(max(0.0, 1.0 + R[1][1] - R[0][0] - R[2][2])) * 2  # s = 4 * qy
        if s == 0.0:
            return Quaternion.identity()
        w = (R[0][2] - R[2][0]) / s
        x = (R[0][1] + R[1][0]) / s
        y = 0.25 * s
        z = (R[1][2] + R[2][1]) / s
    else:
        s = math.sqrt(max(0.0, 1.0 + R[2][2] - R[0][0] - R[1][1])) * 2  # s = 4 * qz
        if s == 0.0:
            return Quaternion.identity()
        w = (R[1][0] - R[0][1]) / s
        x = (R[0][2] + R[2][0]) / s
        y = (R[1][2] + R[2][1]) / s
        z = 0.25 * s

    norm = math.sqrt(x * x + y * y + z * z + w * w)
    if not np.isfinite(norm) or norm < 1e-12:
        return Quaternion.identity()
    return Quaternion(x=x / norm, y=y / norm, z=z / norm, w=w / norm)


def quaternion_to_matrix(q: Quaternion) -> np.ndarray:
    """Inverse of matrix_to_quaternion for unit quaternions"""
    x, y, z, w = q.x, q.y, q.z, q.w
    return np.array([
        [1 - 2 * (y * y + z * z), 2 * (x * y - w * z), 2 * (x * z + w * y)],
        [2 * (x * y + w * z), 1 - 2 * (x * x + z * z), 2 * (y * z - w * x)],
        [2 * (x * z - w * y), 2 * (y * z + w * x), 1 - 2 * (x * x + y * y)],
    ])


def correct_joint(kind: JointKind, sample: JointSample) -> CorrectedJoint:
    """Canonical position and orientation for one joint sample.

    Low-confidence samples are converted like any other; the confidence is
    copied unchanged so consumers can judge the joint themselves.
    """
    return CorrectedJoint(
        kind=kind,
        pos=canonical_position(sample.position),
        ori=matrix_to_quaternion(correct_orientation(sample.orientation)),
        conf=float(sample.confidence)
    )
