import pytest

from skeletonTracker.client import SkeletonClient
from skeletonTracker.communication import ProtocolError
from skeletonTracker.publisher import NetworkFramePublisher


def make_client():
    client = SkeletonClient()
    frames = []
    transforms = []
    client.set_frame_callback(frames.append)
    client.set_transforms_callback(transforms.append)
    return client, frames, transforms


def test_pairs_skeletons_with_bones(tracked):
    frame = tracked.published[-1]
    client, frames, transforms = make_client()

    for message in NetworkFramePublisher.messages(frame):
        client.handle_message(message)

    assert frames == [frame]
    assert len(transforms) == 1
    assert len(transforms[0]) == 15


def test_skeletons_without_bones_are_emitted_on_next_frame(tracked):
    first = tracked.published[-1]
    second = tracked.tracker.tick()
    client, frames, _ = make_client()

    client.handle_message(NetworkFramePublisher.messages(first)[0])
    for message in NetworkFramePublisher.messages(second):
        client.handle_message(message)

    assert len(frames) == 2
    assert frames[0].bones == []
    assert frames[0].skeletons == first.skeletons
    assert frames[1] == second


def test_mismatched_bones_are_dropped(tracked):
    frame = tracked.published[-1]
    client, frames, _ = make_client()
    skeletons, bones, _ = NetworkFramePublisher.messages(frame)
    bones["data"]["timestamp"] = frame.timestamp + 1.0

    client.handle_message(skeletons)
    client.handle_message(bones)

    assert frames == []
    assert client.get_latest_frame() is None


def test_unknown_and_empty_messages_are_ignored():
    client, frames, transforms = make_client()
    client.handle_message({"type": "pointcloud", "data": {}})
    client.handle_message({"type": "skeletons"})
    assert frames == [] and transforms == []


@pytest.mark.parametrize("message", [
    {"type": "skeletons", "data": {"timestamp": 1.0, "skeletons": [{"userid": 1}]}},
    {"type": "skeletons", "data": {"skeletons": []}},
    {"type": "skeletons", "data": [1, 2]},
    {"type": "transforms", "data": [{"parent": "a"}]},
])
def test_invalid_contents_raise_protocol_error(message):
    client, frames, transforms = make_client()
    with pytest.raises(ProtocolError):
        client.handle_message(message)
    assert frames == [] and transforms == []


def test_invalid_bones_keep_pending_skeletons(tracked):
    frame = tracked.published[-1]
    client, frames, _ = make_client()
    skeletons, bones, _ = NetworkFramePublisher.messages(frame)

    client.handle_message(skeletons)
    with pytest.raises(ProtocolError):
        client.handle_message({"type": "bones", "data": {"timestamp": frame.timestamp,
                                                          "bones": [{"userid": 1, "joints": ["head"]}]}})
    assert frames == []

    client.handle_message(bones)
    assert frames == [frame]


def test_client_recovers_after_invalid_message(tracked):
    frame = tracked.published[-1]
    client, frames, _ = make_client()

    with pytest.raises(ProtocolError):
        client.handle_message({"type": "skeletons", "data": {"timestamp": 1.0, "skeletons": [{"userid": 1}]}})
    for message in NetworkFramePublisher.messages(frame):
        client.handle_message(message)

    assert frames == [frame]
