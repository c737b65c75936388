import logging
import socket
import threading
import time

import pytest

from skeletonTracker.client import SkeletonClient
from skeletonTracker.communication import (
    serialize_message, deserialize_message, split_messages, ProtocolError,
    TCPServer, UDPBroadcaster, MAGIC_MSGPACK, MAGIC_MSGPACK_ZSTD, HEADER_SIZE
)
from skeletonTracker.publisher import NetworkFramePublisher

MESSAGE = {"type": "bones", "data": {"timestamp": 12.5, "frame_id": "f", "bones": [{"userid": 1}]}}


@pytest.mark.parametrize("use_msgpack,use_compression", [(False, False), (True, False), (True, True)])
def test_codec(use_msgpack, use_compression):
    raw = serialize_message(MESSAGE, use_msgpack=use_msgpack, use_compression=use_compression)
    assert deserialize_message(raw) == MESSAGE


def test_headers():
    assert serialize_message(MESSAGE, use_msgpack=False).endswith(b"\n")
    assert serialize_message(MESSAGE, use_compression=False)[:2] == MAGIC_MSGPACK
    assert serialize_message(MESSAGE)[:2] == MAGIC_MSGPACK_ZSTD


def test_empty_input():
    assert deserialize_message(b"") is None


@pytest.mark.parametrize("data", [
    b"\x9f\xd0\x00",
    b"\x9f\xd0\x00\x00\x00\x10abc",
    b"\x9f\xd1\x00\x00\x00\x03abc",
    b"{not json\n",
    b"[1, 2]\n",
])
def test_malformed_input(data):
    with pytest.raises(ProtocolError):
        deserialize_message(data)


def test_split_messages_handles_partial_buffers():
    a = serialize_message(MESSAGE)
    b = serialize_message({"type": "skeletons", "data": {}}, use_msgpack=False)
    c = serialize_message(MESSAGE, use_compression=False)
    stream = a + b + c

    received = []
    buffer = b""
    # feed the stream in small, uneven chunks
    for i in range(0, len(stream), 7):
        messages, buffer = split_messages(buffer + stream[i:i + 7])
        received.extend(messages)

    assert buffer == b""
    assert received == [a, b, c]


def test_split_messages_keeps_incomplete_tail():
    a = serialize_message(MESSAGE)
    messages, rest = split_messages(a + a[:HEADER_SIZE + 1])
    assert messages == [a]
    assert rest == a[:HEADER_SIZE + 1]


def test_split_messages_skips_blank_lines():
    messages, rest = split_messages(b"\n\n{}\n")
    assert messages == [b"{}\n"]
    assert rest == b""


def wait_for(predicate, timeout=5.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


@pytest.mark.parametrize("use_msgpack", [True, False])
def test_tcp_end_to_end(tracked, use_msgpack):
    server = TCPServer("127.0.0.1", 0, use_msgpack=use_msgpack)
    server.start()
    client = SkeletonClient(*server.address)
    frames = []
    transforms = []
    got_transforms = threading.Event()
    client.set_frame_callback(frames.append)

    def on_transforms(items):
        transforms.extend(items)
        got_transforms.set()

    client.set_transforms_callback(on_transforms)
    try:
        assert client.connect(timeout=5.0)
        assert wait_for(lambda: server.client_count == 1)

        frame = tracked.published[-1]
        NetworkFramePublisher(server).publish(frame)

        assert got_transforms.wait(5.0)
        assert frames == [frame]
        assert client.get_latest_frame() == frame
        assert [t.child_frame for t in transforms] == [t.child_frame for t in frame.transforms()]
    finally:
        client.disconnect()
        server.stop()


def test_connect_failure_reports_disconnected():
    server = TCPServer("127.0.0.1", 0)
    server.start()
    host, port = server.address
    server.stop()

    states = []
    client = SkeletonClient(host, port)
    client.set_connection_callback(states.append)
    assert not client.connect(timeout=1.0)
    assert not client.is_connected()
    assert states == []


def test_compressed_frame_is_smallest(tracked):
    message = NetworkFramePublisher.messages(tracked.published[-1])[0]
    json_size = len(serialize_message(message, use_msgpack=False))
    msgpack_size = len(serialize_message(message, use_compression=False))
    zstd_size = len(serialize_message(message))
    assert zstd_size < msgpack_size < json_size


def test_tcp_client_survives_invalid_message(tracked):
    server = TCPServer("127.0.0.1", 0)
    server.start()
    client = SkeletonClient(*server.address)
    received = threading.Event()
    frames = []

    def on_frame(frame):
        frames.append(frame)
        received.set()

    client.set_frame_callback(on_frame)
    try:
        assert client.connect(timeout=5.0)
        assert wait_for(lambda: server.client_count == 1)

        server.broadcast({"type": "skeletons", "data": {"timestamp": 1.0, "skeletons": [{"userid": 1}]}})
        server.broadcast({"type": "bones", "data": {"timestamp": 1.0, "frame_id": "f", "bones": []}})
        frame = tracked.published[-1]
        NetworkFramePublisher(server, publish_transforms=False).publish(frame)

        assert received.wait(5.0)
        assert frames == [frame]
        assert client.receive_thread.is_alive()
        assert client.is_connected()
    finally:
        client.disconnect()
        server.stop()


@pytest.fixture
def udp_server():
    server = UDPBroadcaster("127.0.0.1", 0)
    server.start()
    yield server
    server.stop()


@pytest.fixture
def udp_client():
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.settimeout(5.0)
    yield sock
    sock.close()


def test_udp_hello_registration_and_broadcast(udp_server, udp_client):
    udp_client.sendto(b"HELLO", udp_server.address)
    reply, _ = udp_client.recvfrom(1024)
    assert reply == b"HELLO"
    assert wait_for(lambda: udp_server.client_count == 1)

    udp_server.broadcast(MESSAGE)
    datagram, _ = udp_client.recvfrom(65536)
    assert deserialize_message(datagram) == MESSAGE


def test_udp_ignores_other_datagrams(udp_server, udp_client):
    udp_client.sendto(b"hi", udp_server.address)
    udp_client.sendto(b"HELLO", udp_server.address)
    reply, _ = udp_client.recvfrom(1024)
    assert reply == b"HELLO"
    assert udp_server.client_count == 1


def test_udp_drops_oversized_message(udp_server, udp_client, caplog):
    udp_client.sendto(b"HELLO", udp_server.address)
    udp_client.recvfrom(1024)
    udp_server.max_packet_size = 16

    with caplog.at_level(logging.WARNING, logger="skeletonTracker.communication"):
        udp_server.broadcast(MESSAGE)

    assert any("too large" in r.getMessage() for r in caplog.records)
    udp_client.settimeout(0.3)
    with pytest.raises(socket.timeout):
        udp_client.recvfrom(65536)


class UnreachableSocket:
    def sendto(self, data, addr):
        raise OSError("network unreachable")


def test_udp_removes_client_on_send_failure():
    server = UDPBroadcaster("127.0.0.1", 0)
    server.sock = UnreachableSocket()
    server.clients.add(("127.0.0.1", 9))

    server.broadcast(MESSAGE)

    assert server.client_count == 0
