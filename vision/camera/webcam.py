"""Webcam camera implementation."""

import cv2
import numpy as np
from typing import Optional
import logging
from .base import CameraInterface

logger = logging.getLogger(__name__)


class WebcamCamera(CameraInterface):
    """Webcam camera implementation using OpenCV."""

    def __init__(self, config: dict):
        """Initialize webcam camera.

        Args:
            config: Camera configuration dictionary.
        """
        super().__init__(config)
        self.device_index = config.get('device_index', 0)
        self.max_read_failures = max(1, config.get('max_read_failures', 10))
        self.cap = None
        self.frame_count = 0

    def open(self) -> bool:
        """Open webcam connection.

        Returns:
            True if successful, False otherwise.
        """
        self.cap = cv2.VideoCapture(self.device_index)

        if not self.cap.isOpened():
            logger.error(f"Failed to open camera {self.device_index}")
            self.cap.release()
            self.cap = None
            return False

        self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.resolution[0])
        self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.resolution[1])
        self.cap.set(cv2.CAP_PROP_FPS, self.fps)

        actual_width = int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        actual_height = int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        actual_fps = self.cap.get(cv2.CAP_PROP_FPS)
        self.resolution = (actual_width, actual_height)

        logger.info(f"Webcam opened: {actual_width}x{actual_height} @ {actual_fps:.1f}fps")

        self.is_open = True
        return True

    def close(self) -> None:
        """Close webcam connection."""
        if self.cap:
            self.cap.release()
            self.cap = None

        self.is_open = False
        logger.info("Webcam closed")

    def capture(self) -> Optional[np.ndarray]:
        """Capture a single frame.

        Failed reads are retried up to max_read_failures times in a row.

        Returns:
            Image as numpy array or None once the device stops delivering.
        """
        if not self.is_available():
            return None

        for attempt in range(1, self.max_read_failures + 1):
            ret, frame = self.cap.read()
            if ret:
                self.frame_count += 1
                return frame
            logger.warning(f"Failed to capture frame ({attempt}/{self.max_read_failures})")

        logger.error(f"Camera {self.device_index} stopped delivering frames")
        return None
