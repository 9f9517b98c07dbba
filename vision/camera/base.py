"""Abstract base class for frame sources."""

from abc import ABC, abstractmethod
from typing import Optional, Tuple, Iterator
import numpy as np
import logging

logger = logging.getLogger(__name__)


class CameraInterface(ABC):
    """Abstract camera interface for different frame sources."""

    def __init__(self, config: dict):
        """Initialize camera interface.

        Args:
            config: Camera configuration dictionary.
        """
        self.config = config
        self.is_open = False
        self.resolution = tuple(config.get('resolution', [1280, 720]))
        self.fps = config.get('fps', 30)

    @abstractmethod
    def open(self) -> bool:
        """Open camera connection.

        Returns:
            True if successful, False otherwise.
        """

    @abstractmethod
    def close(self) -> None:
        """Close camera connection."""

    @abstractmethod
    def capture(self) -> Optional[np.ndarray]:
        """Capture a single frame.

        Returns:
            Image as numpy array or None if no frame is available.
        """

    def frames(self) -> Iterator[np.ndarray]:
        """Yield frames until the source is exhausted or closed."""
        while self.is_open:
            frame = self.capture()
            if frame is None:
                break
            yield frame

    def is_available(self) -> bool:
        """Check if camera is available."""
        return self.is_open

    def get_resolution(self) -> Tuple[int, int]:
        return self.resolution

    def __enter__(self):
        """Context manager entry."""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
