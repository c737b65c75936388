"""
skeletonTracker.publisher

Output boundary: receives one Frame per tick that holds at least one skeleton.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable

from .enums import MessageType
from .protocol import Frame

logger = logging.getLogger(__name__)


class FramePublisher(ABC):
    @abstractmethod
    def publish(self, frame: Frame) -> None: ...

    def close(self) -> None:
        pass


class CallbackPublisher(FramePublisher):
    """Hands frames to a Python callable (in-process consumers)"""

    def __init__(self, callback: Callable[[Frame], None]):
        self.callback = callback

    def publish(self, frame: Frame) -> None:
        self.callback(frame)


class NetworkFramePublisher(FramePublisher):
    """
    Broadcasts each frame as separate skeletons / bones / transforms messages.

    Args:
        transport: object with broadcast(dict) and stop(), e.g. TCPServer or UDPBroadcaster
        publish_transforms: also send one transform-tree edge per joint
    """

    def __init__(self, transport, publish_transforms: bool = True):
        self.transport = transport
        self.publish_transforms = publish_transforms

    @staticmethod
    def messages(frame: Frame, publish_transforms: bool = True):
        """Wire messages for one frame, in send order"""
        out = [
            {"type": MessageType.SKELETONS.value, "data": frame.skeletons_dict()},
            {"type": MessageType.BONES.value, "data": frame.bones_dict()},
        ]
        if publish_transforms:
            out.append({
                "type": MessageType.TRANSFORMS.value,
                "data": [t.to_dict() for t in frame.transforms()]
            })
        return out

    def publish(self, frame: Frame) -> None:
        for message in self.messages(frame, self.publish_transforms):
            self.transport.broadcast(message)

    def close(self) -> None:
        self.transport.stop()
