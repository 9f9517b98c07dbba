"""Static image camera implementation."""

import cv2
import numpy as np
from typing import Optional, List
from pathlib import Path
import logging
from .base import CameraInterface

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ('.jpg', '.jpeg', '.png', '.bmp', '.tiff', '.tif')


class StaticImageCamera(CameraInterface):
    """Replays image files as a frame source."""

    def __init__(self, config: dict):
        """Initialize static image camera.

        Args:
            config: Camera configuration dictionary. 'file_path' names an
                image or a directory of images; 'loop' replays forever.
        """
        super().__init__(config)
        file_path = config.get('file_path')
        self.file_path = Path(file_path) if file_path else None
        self.loop = config.get('loop', False)
        self.image_list: List[Path] = []
        self.current_index = 0

    def open(self) -> bool:
        """Open image source.

        Returns:
            True if successful, False otherwise.
        """
        if not self.file_path:
            logger.error("No file path specified")
            return False

        if self.file_path.is_file():
            self.image_list = [self.file_path]
        elif self.file_path.is_dir():
            self.image_list = self._discover_images(self.file_path)
        else:
            logger.error(f"Invalid file path: {self.file_path}")
            return False

        if not self.image_list:
            logger.error(f"No images found in {self.file_path}")
            return False

        logger.info(f"Replaying {len(self.image_list)} images from {self.file_path}")
        self.current_index = 0
        self.is_open = True
        return True

    def close(self) -> None:
        """Close image source."""
        self.image_list = []
        self.current_index = 0
        self.is_open = False
        logger.info("Static image camera closed")

    def capture(self) -> Optional[np.ndarray]:
        """Load the next readable image in sequence.

        Unreadable files are logged and skipped.

        Returns:
            Image, or None when the sequence is exhausted.
        """
        if not self.is_available():
            return None

        # One pass over the list at most, so a looping source of bad files ends
        for _ in range(len(self.image_list)):
            if self.current_index >= len(self.image_list):
                if not self.loop:
                    return None
                self.current_index = 0

            path = self.image_list[self.current_index]
            self.current_index += 1

            image = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
            if image is None:
                logger.error(f"Failed to load image, skipping: {path}")
                continue

            logger.debug(f"Loaded image: {path} ({image.shape[1]}x{image.shape[0]})")
            return image

        if self.loop:
            logger.error(f"No readable images in {self.file_path}")
        return None

    def _discover_images(self, directory: Path) -> List[Path]:
        """Discover image files in directory, sorted by name."""
        return sorted(
            p for p in directory.iterdir()
            if p.is_file() and p.suffix.lower() in SUPPORTED_FORMATS
        )
