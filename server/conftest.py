import pytest

from skeletonTracker.config import TrackerConfig
from skeletonTracker.publisher import CallbackPublisher
from skeletonTracker.simulation import SimulatedEngine
from skeletonTracker.tracker import SkeletonTracker

# NewUser -> CalibrationStart -> CalibrationEnd(success)
TICKS_TO_TRACK = 3


class TrackerHarness:
    """Simulated engine + tracker that records every published frame"""

    def __init__(self, users: int = 1, **engine_kwargs):
        self.engine = SimulatedEngine(**engine_kwargs)
        self.engine.open()
        self.user_ids = [self.engine.add_user() for _ in range(users)]
        self.published = []
        self.tracker = SkeletonTracker(
            self.engine, TrackerConfig(tick_period=0.001, refresh_timeout=0.0),
            publishers=[CallbackPublisher(self.published.append)]
        )

    def ticks(self, n: int):
        return [self.tracker.tick() for _ in range(n)]


@pytest.fixture
def harness():
    return TrackerHarness(users=1)


@pytest.fixture
def tracked(harness):
    """Harness whose single user has reached TRACKING"""
    harness.ticks(TICKS_TO_TRACK)
    return harness
