"""
skeletonTracker.engine

Interface to the skeleton tracking engine and the lifecycle events it raises.

The engine detects users, runs pose detection and calibration, and reports
joint samples on request. Lifecycle events are returned from refresh() in
the order they happened, so they can be applied before the tick aggregates.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Union

from .enums import JointKind
from .protocol import JointSample


class EngineInitError(RuntimeError):
    """The engine cannot be started (missing capability or device)"""


@dataclass(frozen=True)
class NewUser:
    user_id: int


@dataclass(frozen=True)
class LostUser:
    user_id: int


@dataclass(frozen=True)
class CalibrationStart:
    user_id: int


@dataclass(frozen=True)
class CalibrationEnd:
    user_id: int
    success: bool


@dataclass(frozen=True)
class PoseDetected:
    user_id: int
    pose: str = ""


LifecycleEvent = Union[NewUser, LostUser, CalibrationStart, CalibrationEnd, PoseDetected]


class TrackingEngine(ABC):
    """
    Skeleton tracking engine adapter.

    Implementations wrap a concrete SDK. open() must raise EngineInitError
    when the engine cannot track skeletons; every other call is expected to
    succeed, missing joints are reported with zero confidence.
    """

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def open(self) -> None: ...

    @abstractmethod
    def close(self) -> None: ...

    @property
    @abstractmethod
    def needs_pose(self) -> bool:
        """True when calibration must be preceded by a detected pose"""

    @property
    def calibration_pose(self) -> str:
        return ""

    @abstractmethod
    def refresh(self, timeout: float) -> List[LifecycleEvent]:
        """Block until new data is available or `timeout` seconds pass.

        Returns the lifecycle events raised during the refresh, oldest first.
        """

    @abstractmethod
    def list_users(self) -> List[int]: ...

    @abstractmethod
    def is_tracking(self, user_id: int) -> bool: ...

    @abstractmethod
    def get_joint_sample(self, user_id: int, kind: JointKind) -> JointSample: ...

    # Commands issued by the lifecycle state machine

    @abstractmethod
    def start_pose_detection(self, pose: str, user_id: int) -> None: ...

    @abstractmethod
    def stop_pose_detection(self, user_id: int) -> None: ...

    @abstractmethod
    def request_calibration(self, user_id: int, force: bool) -> None: ...

    @abstractmethod
    def start_tracking(self, user_id: int) -> None: ...
