"""Main application coordinator for the LED layout calibrator."""

import argparse
import logging
import threading
from pathlib import Path
from typing import Optional

import yaml

from config.loader import ConfigLoader
from config.settings import ApplicationConfig
from utils.logging_config import setup_logging, OperationLogger
from core.event_bus import get_event_bus, Events, Event
from core.message_bus import MessageBus, LoopbackMessageBus
from vision.calibration import CalibrationSession, CalibrationProtocol, LayoutStore
from vision.camera import CameraInterface
from vision.detection import LedDetector, PointSet

logger = logging.getLogger(__name__)


class LedCalibrationApplication:
    """Wires frame source, detector, calibration protocol and message bus."""

    def __init__(self, config_file: Optional[Path] = None,
                 config: Optional[ApplicationConfig] = None):
        """Initialize the application.

        Args:
            config_file: Optional configuration file to load.
            config: Ready configuration; takes precedence over config_file.
        """
        self.config_loader = ConfigLoader()
        self.event_bus = get_event_bus()

        if config is not None:
            self.config = config
        else:
            self._load_config(config_file)

        self._setup_logging()

        self.detector = LedDetector(self.config.detection.to_dict())
        self.session = CalibrationSession(self.config.calibration.capture_count)
        self.message_bus = self._create_message_bus()
        self.protocol = CalibrationProtocol(
            self.session,
            self.message_bus,
            publish_topic=self.config.message_bus.publish_topic,
            subscribe_topic=self.config.message_bus.subscribe_topic,
            event_bus=self.event_bus
        )
        self.layout_store = LayoutStore(self.config.calibration.layout_dir)

        self.camera: Optional[CameraInterface] = None
        self.latest_points: PointSet = []
        self.frames_processed = 0
        self._stall_warned = False
        self._stall_lock = threading.Lock()

        self.protocol.bind()
        self._setup_event_handlers()

        logger.info("LED calibrator initialized")

    def _load_config(self, config_file: Optional[Path] = None) -> None:
        """Load application configuration.

        Args:
            config_file: Optional configuration file.
        """
        try:
            self.config = self.config_loader.load(config_file)

            if not self.config_loader.validate(self.config):
                logger.warning("Configuration validation failed, using defaults")
                self.config = ApplicationConfig()

        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.error(f"Failed to load configuration: {e}")
            logger.info("Using default configuration")
            self.config = ApplicationConfig()

    def _setup_logging(self) -> None:
        """Set up application logging."""
        setup_logging(
            log_dir=self.config.log_dir,
            log_level="DEBUG" if self.config.debug_mode else "INFO",
            verbose=self.config.verbose_logging
        )

    def _create_message_bus(self) -> MessageBus:
        """Create the configured message bus backend."""
        bus_config = self.config.message_bus
        if bus_config.backend == "loopback":
            return LoopbackMessageBus(self.event_bus)

        from core.mqtt_bus import MqttMessageBus
        return MqttMessageBus(bus_config.to_dict(), self.event_bus)

    def _setup_event_handlers(self) -> None:
        """Set up core event handlers."""
        self.event_bus.subscribe(Events.CALIBRATION_STARTED, self._handle_calibration_started)
        self.event_bus.subscribe(Events.CALIBRATION_COMPLETED, self._handle_calibration_completed)

    def initialize_camera(self) -> bool:
        """Initialize the frame source.

        Returns:
            True if successful.
        """
        camera_config = self.config.camera
        if camera_config.source == "webcam":
            from vision.camera.webcam import WebcamCamera
            self.camera = WebcamCamera(camera_config.to_dict())
        elif camera_config.source == "file":
            from vision.camera.static import StaticImageCamera
            self.camera = StaticImageCamera(camera_config.to_dict())
        else:
            logger.error(f"Unknown camera source: {camera_config.source}")
            return False

        if not self.camera.open():
            logger.error("Failed to open camera")
            return False

        self.event_bus.emit(Events.CAMERA_CONNECTED)
        logger.info("Camera initialized successfully")
        return True

    def process_frame(self, frame) -> PointSet:
        """Extract markers from a frame and feed them to the calibration round.

        Args:
            frame: Image from the frame source.

        Returns:
            Points found in the frame; empty if the frame was unusable.
        """
        try:
            points = self.detector.extract(frame)
        except ValueError as e:
            logger.error(f"Skipping frame: {e}")
            self.event_bus.emit(Events.CAMERA_ERROR, str(e), source="detector")
            return []

        self.frames_processed += 1
        self.latest_points = points
        self.event_bus.emit(Events.POINTS_EXTRACTED, points, source="detector")

        self.protocol.submit_points(points)
        self.check_stalled_round()
        return points

    def check_stalled_round(self) -> bool:
        """Warn once per round when it stays open too long.

        Rounds have no timeout; they wait for frames indefinitely.

        Returns:
            True if a warning was raised by this call.
        """
        elapsed = self.session.capturing_for()
        limit = self.config.calibration.stall_warning_seconds

        # Reset from the event bus thread when a new round starts
        with self._stall_lock:
            if elapsed is None:
                self._stall_warned = False
                return False
            if self._stall_warned or elapsed < limit:
                return False
            self._stall_warned = True

        status = self.session.status()
        logger.warning(
            f"Calibration round open for {elapsed:.1f}s with "
            f"{status['captured']}/{status['capture_count']} captures"
        )
        self.event_bus.emit(Events.CALIBRATION_STALLED, status, source="application")
        return True

    def start_calibration(self) -> bool:
        """Send the start trigger to the remote side."""
        return self.protocol.start_calibration()

    def store_layout(self) -> Optional[Path]:
        """Normalize and store the most recent point set."""
        path = self.layout_store.store(self.latest_points)
        if path is not None:
            self.event_bus.emit(Events.LAYOUT_STORED, str(path), source="application")
        return path

    def connect(self, wait: float = 0.0) -> bool:
        """Connect the message bus.

        Args:
            wait: Seconds to wait for the connection to come up.

        Returns:
            True if the bus is connected (or connecting when wait is 0).
        """
        if not self.message_bus.connect():
            return False
        if wait > 0 and not self.message_bus.is_connected:
            self.event_bus.wait_for_event(Events.BUS_CONNECTED, timeout=wait)
            return self.message_bus.is_connected
        return True

    def run(self, max_frames: Optional[int] = None, start: bool = False,
            store_layout: bool = False) -> None:
        """Run the frame loop.

        Args:
            max_frames: Stop after this many frames.
            start: Send a start trigger once connected.
            store_layout: Store the last point set on exit.
        """
        logger.info("Starting LED calibrator")

        if not self.initialize_camera():
            logger.error("Cannot run without a frame source")
            self.shutdown()
            return

        if not self.connect(wait=10.0 if start else 0.0):
            logger.warning("Message bus not connected, continuing")

        if start:
            self.start_calibration()

        try:
            with OperationLogger("frame processing", logger) as operation:
                for frame in self.camera.frames():
                    self.process_frame(frame)
                    if max_frames and self.frames_processed >= max_frames:
                        break
                operation.progress(f"{self.frames_processed} frames processed")

            if store_layout:
                self.store_layout()

        except KeyboardInterrupt:
            logger.info("Application interrupted by user")
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        """Shut down the application cleanly."""
        logger.info("Shutting down application")

        if self.camera:
            self.camera.close()
            self.event_bus.emit(Events.CAMERA_DISCONNECTED)

        try:
            self.message_bus.disconnect()
        except OSError as e:
            logger.error(f"Error disconnecting message bus: {e}")

        self.event_bus.drain()
        self.event_bus.stop()

        logger.info("Application shutdown complete")

    def _handle_calibration_started(self, event: Event) -> None:
        with self._stall_lock:
            self._stall_warned = False

    def _handle_calibration_completed(self, event: Event) -> None:
        logger.info(f"Calibration dataset sent with {len(event.data)} captures")


def build_config(args: argparse.Namespace) -> ApplicationConfig:
    """Load configuration and apply command line overrides."""
    loader = ConfigLoader()
    try:
        config = loader.load(args.config)
    except (OSError, ValueError, yaml.YAMLError) as e:
        logger.error(f"Failed to load configuration: {e}")
        config = ApplicationConfig()

    if args.debug:
        config.debug_mode = True
    if args.bus:
        config.message_bus.backend = args.bus
    if args.source:
        config.camera.source = "file"
        config.camera.file_path = str(args.source)

    if not loader.validate(config):
        logger.warning("Configuration validation failed, using defaults")
        config = ApplicationConfig()

    return config


def main():
    """Main entry point for the application."""
    parser = argparse.ArgumentParser(description="LED layout calibrator")
    parser.add_argument(
        "--config",
        type=Path,
        help="Configuration file path"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode"
    )
    parser.add_argument(
        "--start",
        action="store_true",
        help="Send a start trigger after connecting"
    )
    parser.add_argument(
        "--source",
        type=Path,
        help="Replay images from a file or directory instead of the webcam"
    )
    parser.add_argument(
        "--bus",
        choices=["mqtt", "loopback"],
        help="Message bus backend"
    )
    parser.add_argument(
        "--max-frames",
        type=int,
        help="Stop after this many frames"
    )
    parser.add_argument(
        "--store-layout",
        action="store_true",
        help="Store the normalized layout of the last frame on exit"
    )

    args = parser.parse_args()

    app = LedCalibrationApplication(config=build_config(args))
    app.run(max_frames=args.max_frames, start=args.start, store_layout=args.store_layout)


if __name__ == "__main__":
    main()
