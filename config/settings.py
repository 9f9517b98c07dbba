"""Configuration settings classes for the LED layout calibrator."""

from dataclasses import dataclass, field
from typing import Tuple, Optional
from pathlib import Path


@dataclass(frozen=True)
class Point:
    """Represents a 2D point in frame-pixel space."""
    x: float
    y: float

    def __repr__(self):
        return f"Point(x={self.x}, y={self.y})"

    def as_tuple(self) -> Tuple[float, float]:
        return (self.x, self.y)

    def to_dict(self):
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, data: dict):
        return cls(x=float(data["x"]), y=float(data["y"]))


@dataclass
class MessageBusConfig:
    """Publish/subscribe message bus connection settings."""

    # Backend: mqtt or loopback
    backend: str = "mqtt"

    # Connection settings
    server_url: str = "tcp://localhost:1883"
    username: str = ""
    password: str = ""
    client_id: str = "ledcal"
    keepalive: int = 60
    clean_session: bool = False

    # Topics
    subscribe_topic: str = "ledcal/cal/server"
    publish_topic: str = "ledcal/cal/client"
    qos: int = 0

    # QoS 0 messages held while disconnected
    offline_buffer_size: int = 100

    def to_dict(self):
        return {
            "backend": self.backend,
            "server_url": self.server_url,
            "username": self.username,
            "password": self.password,
            "client_id": self.client_id,
            "keepalive": self.keepalive,
            "clean_session": self.clean_session,
            "subscribe_topic": self.subscribe_topic,
            "publish_topic": self.publish_topic,
            "qos": self.qos,
            "offline_buffer_size": self.offline_buffer_size
        }

    @classmethod
    def from_dict(cls, data: dict):
        return cls(
            backend=data.get("backend", "mqtt"),
            server_url=data.get("server_url", "tcp://localhost:1883"),
            username=data.get("username", "") or "",
            password=data.get("password", "") or "",
            client_id=data.get("client_id", "ledcal"),
            keepalive=data.get("keepalive", 60),
            clean_session=data.get("clean_session", False),
            subscribe_topic=data.get("subscribe_topic", "ledcal/cal/server"),
            publish_topic=data.get("publish_topic", "ledcal/cal/client"),
            qos=data.get("qos", 0),
            offline_buffer_size=data.get("offline_buffer_size", 100)
        )


@dataclass
class DetectionConfig:
    """Bright marker detection parameters."""

    # Pixels strictly brighter than this become foreground
    threshold: int = 251

    # Morphological opening passes (0 disables a pass)
    erode_iterations: int = 1
    dilate_iterations: int = 1

    def to_dict(self):
        return {
            "threshold": self.threshold,
            "erode_iterations": self.erode_iterations,
            "dilate_iterations": self.dilate_iterations
        }

    @classmethod
    def from_dict(cls, data: dict):
        return cls(
            threshold=data.get("threshold", 251),
            erode_iterations=data.get("erode_iterations", 1),
            dilate_iterations=data.get("dilate_iterations", 1)
        )


@dataclass
class CalibrationConfig:
    """Calibration round settings."""

    # Frames accumulated per calibration round
    capture_count: int = 20

    # Warn when a round stays open longer than this (seconds)
    stall_warning_seconds: float = 30.0

    # Where stored layouts are written
    layout_dir: Path = field(default_factory=lambda: Path("layouts"))

    def to_dict(self):
        return {
            "capture_count": self.capture_count,
            "stall_warning_seconds": self.stall_warning_seconds,
            "layout_dir": str(self.layout_dir)
        }

    @classmethod
    def from_dict(cls, data: dict):
        return cls(
            capture_count=data.get("capture_count", 20),
            stall_warning_seconds=data.get("stall_warning_seconds", 30.0),
            layout_dir=Path(data.get("layout_dir", "layouts"))
        )


@dataclass
class CameraConfig:
    """Frame source settings."""

    # Camera source
    source: str = "webcam"  # webcam or file
    device_index: int = 0  # For webcam
    file_path: Optional[str] = None  # For file source
    loop: bool = False  # Replay file source indefinitely
    max_read_failures: int = 10  # Consecutive failed webcam reads before giving up

    # Resolution
    resolution: Tuple[int, int] = (1280, 720)
    fps: int = 30

    def to_dict(self):
        return {
            "source": self.source,
            "device_index": self.device_index,
            "file_path": self.file_path,
            "loop": self.loop,
            "max_read_failures": self.max_read_failures,
            "resolution": list(self.resolution),
            "fps": self.fps
        }

    @classmethod
    def from_dict(cls, data: dict):
        return cls(
            source=data.get("source", "webcam"),
            device_index=data.get("device_index", 0),
            file_path=data.get("file_path"),
            loop=data.get("loop", False),
            max_read_failures=data.get("max_read_failures", 10),
            resolution=tuple(data.get("resolution", [1280, 720])),
            fps=data.get("fps", 30)
        )


@dataclass
class ApplicationConfig:
    """Main application configuration."""

    # Component configurations
    message_bus: MessageBusConfig = field(default_factory=MessageBusConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    calibration: CalibrationConfig = field(default_factory=CalibrationConfig)
    camera: CameraConfig = field(default_factory=CameraConfig)

    # File paths
    log_dir: Path = field(default_factory=lambda: Path("logs"))

    # Debug settings
    debug_mode: bool = False
    verbose_logging: bool = False

    def to_dict(self):
        return {
            "message_bus": self.message_bus.to_dict(),
            "detection": self.detection.to_dict(),
            "calibration": self.calibration.to_dict(),
            "camera": self.camera.to_dict(),
            "log_dir": str(self.log_dir),
            "debug_mode": self.debug_mode,
            "verbose_logging": self.verbose_logging
        }

    @classmethod
    def from_dict(cls, data: dict):
        return cls(
            message_bus=MessageBusConfig.from_dict(data.get("message_bus", {})),
            detection=DetectionConfig.from_dict(data.get("detection", {})),
            calibration=CalibrationConfig.from_dict(data.get("calibration", {})),
            camera=CameraConfig.from_dict(data.get("camera", {})),
            log_dir=Path(data.get("log_dir", "logs")),
            debug_mode=data.get("debug_mode", False),
            verbose_logging=data.get("verbose_logging", False)
        )
