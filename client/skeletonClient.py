#!/usr/bin/env python3

# -----------------------------------------------------------------------------
# Skeleton Tracker
# -----------------------------------------------------------------------------
# Command line client: prints one line per received frame
# -----------------------------------------------------------------------------

import argparse
import logging
import sys
import time

from skeletonTracker.client import SkeletonClient
from skeletonTracker.enums import JointKind
from skeletonTracker.protocol import Frame

logging.basicConfig(
    level=logging.INFO,
    format='[%(levelname)s] %(message)s'
)
logger = logging.getLogger("skeletonClient")


def on_frame(frame: Frame):
    parts = []
    for skeleton in frame.skeletons:
        head = skeleton.get_joint(JointKind.HEAD)
        if head is not None:
            parts.append(f"user {skeleton.user_id} head=({head.pos.x:.2f}, {head.pos.y:.2f}, {head.pos.z:.2f})")
    logger.info("t=%.3f skeletons=%d bones=%d %s", frame.timestamp, len(frame.skeletons),
                len(frame.bones), " ".join(parts))


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("--server", default="localhost", help="Server IP (default: localhost)")
    parser.add_argument("--port", type=int, default=12345, help="Server port (default: 12345)")
    args = parser.parse_args()

    client = SkeletonClient(server_ip=args.server, server_port=args.port)
    client.set_frame_callback(on_frame)
    if not client.connect():
        return 1

    try:
        while client.is_connected():
            time.sleep(0.1)
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    finally:
        client.disconnect()
    return 0


if __name__ == "__main__":
    sys.exit(main())
