#!/usr/bin/env python3

# -----------------------------------------------------------------------------
# Skeleton Tracker
# -----------------------------------------------------------------------------
# Server
# -----------------------------------------------------------------------------

import argparse
import logging
import sys

from skeletonTracker.communication import TCPServer, UDPBroadcaster
from skeletonTracker.config import TrackerConfig, ConfigError, ENGINES
from skeletonTracker.engine import EngineInitError
from skeletonTracker.publisher import NetworkFramePublisher
from skeletonTracker.tracker import SkeletonTracker

logger = logging.getLogger("skeletonTrackerServer")


def parse_arguments(args=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Skeleton tracking server")
    parser.add_argument("--engine", choices=ENGINES, default="sim",
                        help="Tracking engine: simulated or ZED camera (default: sim)")
    parser.add_argument("--host", default="0.0.0.0", help="Server host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=12345, help="Server port (default: 12345)")
    parser.add_argument("--udp", action="store_true", help="Broadcast over UDP instead of TCP")
    parser.add_argument("--json", action="store_true", help="Send newline-delimited JSON instead of MessagePack")
    parser.add_argument("--no-compression", action="store_true", help="Disable zstd compression")
    parser.add_argument("--rate", type=float, default=100.0, help="Ticks per second (default: 100)")
    parser.add_argument("--threshold", type=float, default=0.5,
                        help="Minimum joint confidence for bone endpoints (default: 0.5)")
    parser.add_argument("--max-users", type=int, default=15, help="Maximum users processed per tick")
    parser.add_argument("--sim-users", type=int, default=1, help="Users in the simulated scene")
    parser.add_argument("--sim-pose", action="store_true", help="Simulated engine requires a calibration pose")
    parser.add_argument("--no-transforms", action="store_true", help="Do not publish per-joint transforms")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    return parser.parse_args(args)


def create_engine(config: TrackerConfig, args):
    if config.engine == "zed":
        # imported here so the server runs without the ZED SDK installed
        try:
            from skeletonTracker.zedEngine import ZedTrackingEngine
        except ImportError as e:
            raise EngineInitError(f"ZED SDK (pyzed) not available: {e}") from e
        return ZedTrackingEngine()

    from skeletonTracker.simulation import SimulatedEngine
    engine = SimulatedEngine(needs_pose=args.sim_pose, frame_period=1.0 / 30)
    for _ in range(config.sim_users):
        engine.add_user()
    return engine


def create_transport(config: TrackerConfig):
    if config.use_udp:
        return UDPBroadcaster(config.host, config.port, use_msgpack=config.use_msgpack,
                              use_compression=config.use_compression)
    return TCPServer(config.host, config.port, use_msgpack=config.use_msgpack,
                     use_compression=config.use_compression)


def main(argv=None) -> int:
    args = parse_arguments(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='[%(levelname)s] %(message)s'
    )

    try:
        config = TrackerConfig.from_args(args)
    except ConfigError as e:
        logger.error("Invalid configuration: %s", e)
        return 2

    try:
        engine = create_engine(config, args)
        engine.open()
    except EngineInitError as e:
        logger.error("Failed to initialize tracking engine: %s", e)
        return 1

    transport = create_transport(config)
    tracker = SkeletonTracker(engine, config)
    try:
        transport.start()
        tracker.add_publisher(NetworkFramePublisher(transport, config.publish_transforms))
        logger.info("Running. Press Ctrl+C to exit...")
        tracker.run()
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except OSError as e:
        logger.error("Server error: %s", e)
        return 1
    finally:
        tracker.cleanup()
        engine.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
