#!/usr/bin/env python3
"""
Skeleton Tracker Client Library

Connects to a skeleton tracker server and turns its messages back into frames.
"""

import logging
import socket
import threading
from typing import Callable, List, Optional

from .communication import deserialize_message, split_messages, ProtocolError
from .enums import MessageType
from .protocol import Frame, JointTransform

logger = logging.getLogger(__name__)


class SkeletonClient:
    """Client receiving skeleton, bone and transform messages over TCP"""

    def __init__(self, server_ip: str = "localhost", server_port: int = 12345):
        self.server_ip = server_ip
        self.server_port = server_port

        self.socket: Optional[socket.socket] = None
        self.connected = False
        self.running = False
        self.latest_frame: Optional[Frame] = None
        self._pending: Optional[Frame] = None  # skeletons waiting for their bones

        # Callbacks
        self.frame_callback: Optional[Callable[[Frame], None]] = None
        self.transforms_callback: Optional[Callable[[List[JointTransform]], None]] = None
        self.connection_callback: Optional[Callable[[bool], None]] = None

        self.receive_thread: Optional[threading.Thread] = None

    def set_frame_callback(self, callback: Callable[[Frame], None]):
        """Set callback function to be called when a new frame is received"""
        self.frame_callback = callback

    def set_transforms_callback(self, callback: Callable[[List[JointTransform]], None]):
        self.transforms_callback = callback

    def set_connection_callback(self, callback: Callable[[bool], None]):
        """Set callback function to be called when connection status changes"""
        self.connection_callback = callback

    def connect(self, timeout: float = 10.0) -> bool:
        try:
            self.socket = socket.create_connection((self.server_ip, self.server_port), timeout=timeout)
            self.socket.settimeout(None)
            self.socket.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)  # Disable Nagle's algorithm
        except OSError as e:
            logger.error("Failed to connect to server %s:%d: %s", self.server_ip, self.server_port, e)
            self._set_connected(False)
            return False

        self.running = True
        self._set_connected(True)
        self.receive_thread = threading.Thread(target=self._receive_loop, daemon=True)
        self.receive_thread.start()
        logger.info("Connected to server at %s:%d", self.server_ip, self.server_port)
        return True

    def disconnect(self):
        self.running = False
        if self.socket:
            try:
                self.socket.close()
            except OSError:
                pass
            self.socket = None
        self._set_connected(False)

    def is_connected(self) -> bool:
        return self.connected

    def get_latest_frame(self) -> Optional[Frame]:
        return self.latest_frame

    def _set_connected(self, connected: bool):
        changed = connected != self.connected
        self.connected = connected
        if changed and self.connection_callback:
            self.connection_callback(connected)

    def _receive_loop(self):
        buffer = b''
        try:
            while self.running:
                try:
                    chunk = self.socket.recv(65536)
                except OSError as e:
                    if self.running:
                        logger.error("Error receiving data: %s", e)
                    break
                if not chunk:
                    logger.warning("Server closed connection")
                    break

                messages, buffer = split_messages(buffer + chunk)
                for raw in messages:
                    try:
                        message = deserialize_message(raw)
                        if message:
                            self.handle_message(message)
                    except ProtocolError as e:
                        logger.warning("Skipping malformed message: %s", e)
        finally:
            self.running = False
            self._set_connected(False)
            logger.info("Disconnected from %s:%d", self.server_ip, self.server_port)

    def handle_message(self, message: dict):
        """Dispatch one decoded server message.

        Raises ProtocolError when the message contents do not describe a
        valid frame; client state is left as it was before the message.
        """
        msg_type = message.get("type")
        data = message.get("data")
        if data is None:
            return

        if msg_type == MessageType.SKELETONS.value:
            frame = _parse(lambda: Frame.from_messages(data))
            if self._pending is not None:
                # previous skeletons never got their bones
                self._emit(self._pending)
            self._pending = frame
        elif msg_type == MessageType.BONES.value:
            timestamp = _parse(lambda: float(data["timestamp"]))
            pending = self._pending
            if pending is None or pending.timestamp != timestamp:
                logger.debug("Bones without matching skeletons, dropped")
                return
            _parse(lambda: pending.set_bones(data))
            self._pending = None
            self._emit(pending)
        elif msg_type == MessageType.TRANSFORMS.value:
            transforms = _parse(lambda: [JointTransform.from_dict(t) for t in data])
            if self.transforms_callback:
                self.transforms_callback(transforms)
        else:
            logger.debug("Ignoring message type %s", msg_type)

    def _emit(self, frame: Frame):
        self.latest_frame = frame
        if self.frame_callback:
            self.frame_callback(frame)


def _parse(build):
    """Run a message decoder, reporting missing or mistyped fields as ProtocolError"""
    try:
        return build()
    except (KeyError, IndexError, TypeError, ValueError, AttributeError) as e:
        raise ProtocolError(f"Invalid message contents: {e!r}") from e
