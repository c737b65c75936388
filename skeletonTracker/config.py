"""Runtime configuration for the skeleton tracker server."""

from dataclasses import dataclass

ENGINES = ("sim", "zed")


class ConfigError(ValueError):
    """Configuration value out of range"""


@dataclass
class TrackerConfig:
    # Tick loop
    tick_period: float = 0.01          # seconds between ticks, independent of sensor rate
    refresh_timeout: float = 0.1       # max seconds a refresh may block

    # Filtering
    confidence_threshold: float = 0.5  # bones need both endpoints at or above this
    max_users: int = 15
    retry_warning_interval: int = 10   # warn every N failed calibrations of one user

    # Output frames
    frame_id: str = "trep_world_frame"
    bones_frame_id: str = "openni_depth_optical_frame"
    publish_transforms: bool = True

    # Transport
    host: str = "0.0.0.0"
    port: int = 12345
    use_udp: bool = False
    use_msgpack: bool = True
    use_compression: bool = True

    # Engine
    engine: str = "sim"
    sim_users: int = 1

    def validate(self) -> "TrackerConfig":
        if self.tick_period <= 0:
            raise ConfigError(f"tick_period must be positive, got {self.tick_period}")
        if self.refresh_timeout < 0:
            raise ConfigError(f"refresh_timeout must not be negative, got {self.refresh_timeout}")
        if not 0.0 <= self.confidence_threshold <= 1.0:
            raise ConfigError(f"confidence_threshold must be in [0, 1], got {self.confidence_threshold}")
        if self.max_users < 1:
            raise ConfigError(f"max_users must be at least 1, got {self.max_users}")
        if self.retry_warning_interval < 0:
            raise ConfigError(f"retry_warning_interval must not be negative, got {self.retry_warning_interval}")
        if not 0 <= self.port <= 65535:
            raise ConfigError(f"port out of range: {self.port}")
        if self.engine not in ENGINES:
            raise ConfigError(f"Unknown engine '{self.engine}', expected one of {', '.join(ENGINES)}")
        if self.sim_users < 0:
            raise ConfigError(f"sim_users must not be negative, got {self.sim_users}")
        return self

    @staticmethod
    def from_args(args) -> "TrackerConfig":
        """Build from the server's argparse namespace"""
        if args.rate <= 0:
            raise ConfigError(f"rate must be positive, got {args.rate}")
        return TrackerConfig(
            tick_period=1.0 / args.rate,
            confidence_threshold=args.threshold,
            max_users=args.max_users,
            publish_transforms=not args.no_transforms,
            host=args.host,
            port=args.port,
            use_udp=args.udp,
            use_msgpack=not args.json,
            use_compression=not args.no_compression,
            engine=args.engine,
            sim_users=args.sim_users,
        ).validate()
