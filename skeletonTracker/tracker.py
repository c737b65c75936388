#!/usr/bin/env python3
"""
Skeleton Tracker

Tick driver: refreshes the tracking engine, applies lifecycle events, builds
the frame and hands it to the publishers.
"""

import logging
import time
from typing import List, Optional

from .builder import SkeletonFrameBuilder
from .config import TrackerConfig
from .engine import TrackingEngine
from .lifecycle import UserLifecycle
from .protocol import Frame
from .publisher import FramePublisher

logger = logging.getLogger(__name__)


class SkeletonTracker:
    """Main tracking loop for one engine"""

    def __init__(self, engine: TrackingEngine, config: Optional[TrackerConfig] = None,
                 publishers: Optional[List[FramePublisher]] = None):
        self.engine = engine
        self.config = config or TrackerConfig()
        self.publishers: List[FramePublisher] = list(publishers or [])
        self.lifecycle = UserLifecycle(engine, retry_warning_interval=self.config.retry_warning_interval)
        self.builder = SkeletonFrameBuilder(
            engine, self.lifecycle,
            confidence_threshold=self.config.confidence_threshold,
            max_users=self.config.max_users,
            frame_id=self.config.frame_id,
            bones_frame_id=self.config.bones_frame_id
        )
        self.running = False
        self.tick_count = 0
        self.publish_count = 0
        self.timestamp = 0.0
        self.last_timestamp = 0.0

    def add_publisher(self, publisher: FramePublisher):
        self.publishers.append(publisher)

    def tick(self) -> Frame:
        """Run one refresh / aggregate / publish cycle"""
        self.last_timestamp = self.timestamp
        self.timestamp = time.time()

        # lifecycle events are applied before anything is aggregated
        events = self.engine.refresh(self.config.refresh_timeout)
        self.lifecycle.handle_all(events)

        frame = self.builder.build(self.timestamp)
        self.tick_count += 1

        if not frame.has_skeletons():
            logger.debug("No tracked users, frame not published")
            return frame

        for publisher in self.publishers:
            try:
                publisher.publish(frame)
            except Exception:
                logger.exception("Publisher %s failed", type(publisher).__name__)
        self.publish_count += 1
        return frame

    def run(self, max_ticks: Optional[int] = None):
        """Tick at a fixed period until stop() is called (or max_ticks reached)"""
        frame_interval = self.config.tick_period
        last_time = time.time()
        self.running = True

        logger.info("Starting skeleton tracking loop (%.1f Hz, engine: %s)",
                    1.0 / frame_interval, self.engine.name())

        while self.running:
            now = time.time()
            if now - last_time < frame_interval:
                time.sleep(frame_interval - (now - last_time))
            last_time = time.time()

            self.tick()
            if max_ticks is not None and self.tick_count >= max_ticks:
                break

        self.running = False
        logger.info("Tracking loop stopped after %d ticks (%d published)",
                    self.tick_count, self.publish_count)

    def stop(self):
        self.running = False

    def cleanup(self):
        """Stop the loop and close all publishers"""
        self.stop()
        for publisher in self.publishers:
            try:
                publisher.close()
            except Exception:
                logger.exception("Failed to close publisher %s", type(publisher).__name__)
        self.publishers.clear()
