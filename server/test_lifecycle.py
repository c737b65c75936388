import logging

import pytest

from skeletonTracker.engine import NewUser, LostUser, CalibrationStart, CalibrationEnd, PoseDetected
from skeletonTracker.enums import UserState
from skeletonTracker.lifecycle import UserLifecycle
from skeletonTracker.simulation import SimulatedEngine


@pytest.fixture
def engine():
    return SimulatedEngine()


@pytest.fixture
def pose_engine():
    return SimulatedEngine(needs_pose=True)


def test_clean_calibration_reaches_tracking(engine):
    lifecycle = UserLifecycle(engine)

    assert lifecycle.handle(NewUser(1)) == UserState.CALIBRATING
    assert engine.commands == [("request_calibration", 1, True)]

    assert lifecycle.handle(CalibrationStart(1)) == UserState.CALIBRATING
    assert lifecycle.handle(CalibrationEnd(1, True)) == UserState.TRACKING
    assert engine.commands[-1] == ("start_tracking", 1)
    assert lifecycle.is_tracking(1)
    assert lifecycle.tracked_users() == [1]


def test_pose_path(pose_engine):
    lifecycle = UserLifecycle(pose_engine)

    assert lifecycle.handle(NewUser(4)) == UserState.AWAITING_POSE
    assert pose_engine.commands == [("start_pose_detection", 4, "Psi")]

    assert lifecycle.handle(PoseDetected(4, "Psi")) == UserState.CALIBRATING
    assert pose_engine.commands[1:] == [("stop_pose_detection", 4), ("request_calibration", 4, True)]

    lifecycle.handle(CalibrationStart(4))
    assert lifecycle.handle(CalibrationEnd(4, True)) == UserState.TRACKING


def test_failed_calibration_retries_without_limit(engine):
    lifecycle = UserLifecycle(engine)
    lifecycle.handle(NewUser(1))

    for attempt in range(1, 101):
        lifecycle.handle(CalibrationStart(1))
        assert lifecycle.handle(CalibrationEnd(1, False)) == UserState.CALIBRATING
        assert lifecycle.entry(1).calibration_failures == attempt

    requests = [c for c in engine.commands if c[0] == "request_calibration"]
    assert len(requests) == 101
    assert all(force for _, _, force in requests)
    assert lifecycle.entry(1).calibration_attempts == 101

    assert lifecycle.handle(CalibrationEnd(1, True)) == UserState.TRACKING
    assert lifecycle.entry(1).calibration_failures == 0


def test_failed_calibration_with_pose_waits_for_pose_again(pose_engine):
    lifecycle = UserLifecycle(pose_engine)
    lifecycle.handle(NewUser(2))
    lifecycle.handle(PoseDetected(2))

    assert lifecycle.handle(CalibrationEnd(2, False)) == UserState.AWAITING_POSE
    assert pose_engine.commands[-1] == ("start_pose_detection", 2, "Psi")


def test_retry_warning_interval(engine, caplog):
    lifecycle = UserLifecycle(engine, retry_warning_interval=3)
    lifecycle.handle(NewUser(1))

    with caplog.at_level(logging.WARNING, logger="skeletonTracker.lifecycle"):
        for _ in range(7):
            lifecycle.handle(CalibrationEnd(1, False))

    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 2


def test_lost_user_is_forgotten(engine):
    lifecycle = UserLifecycle(engine)
    lifecycle.handle(NewUser(1))
    lifecycle.handle(CalibrationEnd(1, True))

    assert lifecycle.handle(LostUser(1)) == UserState.LOST
    assert lifecycle.entry(1) is None
    assert not lifecycle.is_tracking(1)
    assert len(lifecycle) == 0


def test_lost_from_any_state(pose_engine):
    lifecycle = UserLifecycle(pose_engine)
    lifecycle.handle(NewUser(1))
    lifecycle.handle(NewUser(2))
    lifecycle.handle(PoseDetected(2))

    assert lifecycle.handle(LostUser(1)) == UserState.LOST
    assert lifecycle.handle(LostUser(2)) == UserState.LOST
    assert lifecycle.known_users() == []


def test_reappearing_user_starts_fresh(engine):
    lifecycle = UserLifecycle(engine)
    lifecycle.handle(NewUser(3))
    lifecycle.handle(CalibrationEnd(3, False))
    lifecycle.handle(CalibrationEnd(3, False))
    lifecycle.handle(LostUser(3))

    assert lifecycle.handle(NewUser(3)) == UserState.CALIBRATING
    entry = lifecycle.entry(3)
    assert entry.calibration_failures == 0
    assert entry.calibration_attempts == 1


def test_new_user_for_known_id_resets(engine):
    lifecycle = UserLifecycle(engine)
    lifecycle.handle(NewUser(1))
    lifecycle.handle(CalibrationEnd(1, True))

    assert lifecycle.handle(NewUser(1)) == UserState.CALIBRATING
    assert not lifecycle.is_tracking(1)


def test_out_of_order_events_are_ignored(engine):
    lifecycle = UserLifecycle(engine)

    # unknown user
    assert lifecycle.handle(CalibrationEnd(9, True)) == UserState.LOST
    assert lifecycle.handle(CalibrationStart(9)) == UserState.LOST
    assert lifecycle.handle(PoseDetected(9)) == UserState.LOST
    assert lifecycle.handle(LostUser(9)) == UserState.LOST
    assert engine.commands == []

    # pose event while calibrating
    lifecycle.handle(NewUser(1))
    assert lifecycle.handle(PoseDetected(1)) == UserState.CALIBRATING

    # calibration result once already tracking
    lifecycle.handle(CalibrationEnd(1, True))
    commands = list(engine.commands)
    assert lifecycle.handle(CalibrationEnd(1, False)) == UserState.TRACKING
    assert engine.commands == commands


def test_users_are_independent(engine):
    lifecycle = UserLifecycle(engine)
    lifecycle.handle_all([NewUser(1), NewUser(2), CalibrationEnd(1, True), CalibrationEnd(2, False)])

    assert lifecycle.state_of(1) == UserState.TRACKING
    assert lifecycle.state_of(2) == UserState.CALIBRATING
    assert lifecycle.entry(1).calibration_failures == 0
    assert lifecycle.entry(2).calibration_failures == 1


def test_unknown_event_type_raises(engine):
    lifecycle = UserLifecycle(engine)
    with pytest.raises(TypeError):
        lifecycle.handle(object())
