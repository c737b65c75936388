"""
skeletonTracker.communication

Wire codec and broadcast transports for skeleton tracking messages.
Supports MessagePack (binary) + Zstandard compression, or newline-delimited JSON.
"""

import json
import logging
import queue
import socket
import struct
import threading
from typing import Any, List, Optional, Set, Tuple

import msgpack
import zstandard as zstd

logger = logging.getLogger(__name__)

# Reusable compressor/decompressor, level 3 = fast, good compression
_zstd_compressor = zstd.ZstdCompressor(level=3)
_zstd_decompressor = zstd.ZstdDecompressor()

# Protocol magic bytes to identify message format
MAGIC_MSGPACK = b'\x9f\xd0'           # 2-byte magic for MessagePack (uncompressed)
MAGIC_MSGPACK_ZSTD = b'\x9f\xd1'      # 2-byte magic for MessagePack + zstd
HEADER_SIZE = 6                        # [magic:2][length:4]
MAX_UDP_PAYLOAD = 65000


class ProtocolError(ValueError):
    """Received bytes are not a valid message"""


def protocol_name(use_msgpack: bool, use_compression: bool) -> str:
    if use_msgpack and use_compression:
        return "MessagePack+zstd"
    if use_msgpack:
        return "MessagePack"
    return "JSON"


def serialize_message(data: dict, use_msgpack: bool = True, use_compression: bool = True) -> bytes:
    """
    Serialize a message to bytes.

    Args:
        data: Dictionary to serialize
        use_msgpack: Use MessagePack framing, otherwise newline-delimited JSON
        use_compression: Compress the MessagePack payload with zstd

    Returns:
        Serialized bytes with protocol header
    """
    if not use_msgpack:
        return (json.dumps(data) + "\n").encode("utf-8")

    # MessagePack format: [magic:2 bytes][length:4 bytes][payload]
    payload = msgpack.packb(data, use_bin_type=True)
    if use_compression:
        payload = _zstd_compressor.compress(payload)
        magic = MAGIC_MSGPACK_ZSTD
    else:
        magic = MAGIC_MSGPACK
    return magic + struct.pack('>I', len(payload)) + payload


def deserialize_message(data: bytes) -> Optional[dict]:
    """
    Deserialize one complete message, auto-detecting format and compression.

    Returns None for empty input, raises ProtocolError for malformed input.
    """
    if len(data) == 0:
        return None

    if data[:2] in (MAGIC_MSGPACK, MAGIC_MSGPACK_ZSTD):
        if len(data) < HEADER_SIZE:
            raise ProtocolError("Incomplete MessagePack header")
        length = struct.unpack('>I', data[2:HEADER_SIZE])[0]
        payload = data[HEADER_SIZE:HEADER_SIZE + length]
        if len(payload) < length:
            raise ProtocolError(f"Truncated payload: expected {length} bytes, got {len(payload)}")
        try:
            if data[:2] == MAGIC_MSGPACK_ZSTD:
                payload = _zstd_decompressor.decompress(payload)
            message = msgpack.unpackb(payload, raw=False)
        except (zstd.ZstdError, ValueError, msgpack.UnpackException) as e:
            raise ProtocolError(f"MessagePack deserialization failed: {e}") from e
    else:
        try:
            message = json.loads(data.decode('utf-8').strip())
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ProtocolError(f"JSON deserialization failed: {e}") from e

    if not isinstance(message, dict):
        raise ProtocolError(f"Expected a message dict, got {type(message).__name__}")
    return message


def split_messages(buffer: bytes) -> Tuple[List[bytes], bytes]:
    """
    Cut complete messages off the front of a stream buffer.

    Returns (complete message byte strings, remaining partial bytes).
    """
    messages = []
    while buffer:
        if buffer[:2] in (MAGIC_MSGPACK, MAGIC_MSGPACK_ZSTD):
            if len(buffer) < HEADER_SIZE:
                break
            length = struct.unpack('>I', buffer[2:HEADER_SIZE])[0]
            total_size = HEADER_SIZE + length
            if len(buffer) < total_size:
                break  # Wait for more data
            messages.append(buffer[:total_size])
            buffer = buffer[total_size:]
        else:
            # Assume JSON - look for newline
            newline_idx = buffer.find(b'\n')
            if newline_idx < 0:
                break
            line = buffer[:newline_idx + 1]
            buffer = buffer[newline_idx + 1:]
            if line.strip():
                messages.append(line)
    return messages, buffer


class TCPServer:
    """
    TCP server broadcasting pre-serialized messages to all connected clients.

    Each client gets a bounded send queue drained by its own thread; when a
    client falls behind, new messages for it are dropped instead of blocking
    the caller.
    """

    def __init__(self, host: str, port: int, use_msgpack: bool = True,
                 use_compression: bool = True, queue_size: int = 8):
        self.host = host
        self.port = port
        self.use_msgpack = use_msgpack
        self.use_compression = use_compression
        self.queue_size = queue_size
        self.protocol_name = protocol_name(use_msgpack, use_compression)
        self.running = False
        self.server_socket: Optional[socket.socket] = None
        self._clients = {}  # socket -> queue.Queue
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    @property
    def client_count(self) -> int:
        with self._lock:
            return len(self._clients)

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); useful when started on port 0"""
        if self.server_socket is None:
            return self.host, self.port
        return self.server_socket.getsockname()[:2]

    def start(self):
        self.server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self.server_socket.bind((self.host, self.port))
        self.server_socket.listen(5)
        self.running = True
        self._thread = threading.Thread(target=self._accept_loop, daemon=True)
        self._thread.start()
        host, port = self.address
        logger.info("TCP server listening on %s:%d (protocol: %s)", host, port, self.protocol_name)

    def _accept_loop(self):
        while self.running:
            try:
                conn, addr = self.server_socket.accept()
            except OSError:
                if self.running:
                    logger.error("Socket error in TCP server")
                break
            conn.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            q = queue.Queue(maxsize=self.queue_size)
            with self._lock:
                self._clients[conn] = q
            logger.info("Client connected from %s", addr)
            threading.Thread(target=self._client_sender_worker, args=(conn, addr, q), daemon=True).start()

    def _client_sender_worker(self, conn: socket.socket, addr, q: "queue.Queue"):
        try:
            while True:
                msg = q.get()
                if msg is None:
                    break
                conn.sendall(msg)
        except OSError as e:
            if self.running:
                logger.warning("Send error, removing client %s: %s", addr, e)
        finally:
            self._drop_client(conn)
            logger.info("Client disconnected: %s", addr)

    def _drop_client(self, conn: socket.socket):
        with self._lock:
            self._clients.pop(conn, None)
        try:
            conn.close()
        except OSError:
            pass

    def broadcast(self, data: dict):
        """Serialize once and queue the same bytes for every client"""
        msg = serialize_message(data, use_msgpack=self.use_msgpack, use_compression=self.use_compression)
        with self._lock:
            queues = list(self._clients.values())
        for q in queues:
            try:
                q.put_nowait(msg)
            except queue.Full:
                # drop message for this slow client
                pass

    def stop(self):
        """Stop the server and close all connections"""
        self.running = False
        with self._lock:
            queues = list(self._clients.values())
        for q in queues:
            try:
                q.put_nowait(None)
            except queue.Full:
                pass
        if self.server_socket:
            try:
                self.server_socket.close()
            except OSError:
                pass
            self.server_socket = None
        logger.info("TCP server stopped")


class UDPBroadcaster:
    """
    UDP sender for low-latency streaming, packet loss OK.

    Clients register by sending b"HELLO" to the server port and are answered
    with b"HELLO". Each message is one datagram; oversized messages are dropped.
    """

    def __init__(self, host: str = "0.0.0.0", port: int = 12346,
                 use_msgpack: bool = True, use_compression: bool = True,
                 max_packet_size: int = MAX_UDP_PAYLOAD):
        self.host = host
        self.port = port
        self.use_msgpack = use_msgpack
        self.use_compression = use_compression
        self.max_packet_size = max_packet_size
        self.protocol_name = "UDP " + protocol_name(use_msgpack, use_compression)
        self.running = False
        self.sock: Optional[socket.socket] = None
        self.clients: Set[Any] = set()
        self._lock = threading.Lock()

    @property
    def client_count(self) -> int:
        with self._lock:
            return len(self.clients)

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); useful when started on port 0"""
        if self.sock is None:
            return self.host, self.port
        return self.sock.getsockname()[:2]

    def start(self):
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self.sock.bind((self.host, self.port))
        self.running = True
        threading.Thread(target=self._listen, daemon=True).start()
        host, port = self.address
        logger.info("UDP server listening on %s:%d (protocol: %s)", host, port, self.protocol_name)

    def _listen(self):
        sock = self.sock
        while self.running:
            try:
                data, addr = sock.recvfrom(1024)
            except OSError:
                if self.running:
                    logger.warning("UDP listener error")
                break
            if data == b"HELLO":
                with self._lock:
                    if addr not in self.clients:
                        self.clients.add(addr)
                        logger.info("UDP client registered from %s", addr)
                try:
                    sock.sendto(b"HELLO", addr)
                except OSError as e:
                    logger.warning("Failed to answer UDP client %s: %s", addr, e)

    def broadcast(self, data: dict):
        msg = serialize_message(data, use_msgpack=self.use_msgpack, use_compression=self.use_compression)
        if len(msg) > self.max_packet_size:
            logger.warning("Message too large for UDP (%d bytes), dropping", len(msg))
            return
        with self._lock:
            targets = list(self.clients)
        for addr in targets:
            try:
                self.sock.sendto(msg, addr)
            except OSError as e:
                logger.warning("Failed to send to UDP client %s: %s", addr, e)
                with self._lock:
                    self.clients.discard(addr)

    def stop(self):
        self.running = False
        if self.sock:
            self.sock.close()
            self.sock = None
        logger.info("UDP server stopped")
