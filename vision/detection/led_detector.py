"""Bright LED marker detection."""

import cv2
import numpy as np
from typing import List, Dict, Any, Sequence
import logging
from dataclasses import dataclass, field
from config.settings import Point

logger = logging.getLogger(__name__)

PointSet = List[Point]

DEFAULT_THRESHOLD = 251


@dataclass
class LedDetectionResult:
    """Result of one detection pass."""
    points: PointSet
    contours: List[np.ndarray] = field(default_factory=list)
    degenerate_count: int = 0


def centroids_from_contours(contours: Sequence[np.ndarray]) -> LedDetectionResult:
    """Compute blob centroids from their area moments.

    Contours with zero area (a single point or a colinear boundary) have no
    defined centroid and are left out.

    Args:
        contours: Contours in discovery order.

    Returns:
        LedDetectionResult with one point per non-degenerate contour.
    """
    points = []
    kept = []
    degenerate = 0

    for contour in contours:
        m = cv2.moments(contour)
        if m["m00"] == 0:
            degenerate += 1
            continue
        points.append(Point(m["m10"] / m["m00"], m["m01"] / m["m00"]))
        kept.append(contour)

    return LedDetectionResult(points=points, contours=kept, degenerate_count=degenerate)


class LedDetector:
    """Locates saturated bright markers against a dark scene."""

    def __init__(self, config: Dict[str, Any]):
        """Initialize LED detector.

        Args:
            config: Detection configuration dictionary.
        """
        self.config = config
        self.threshold = config.get('threshold', DEFAULT_THRESHOLD)
        self.erode_iterations = config.get('erode_iterations', 1)
        self.dilate_iterations = config.get('dilate_iterations', 1)

        logger.info(f"LED detector initialized (threshold > {self.threshold})")

    def extract(self, frame: np.ndarray) -> PointSet:
        """Extract one point per detected marker.

        Args:
            frame: Input image (grayscale, BGR or BGRA).

        Returns:
            Marker centroids in discovery order.
        """
        return self.detect(frame).points

    def detect(self, frame: np.ndarray) -> LedDetectionResult:
        """Run the full detection pipeline on a frame.

        Args:
            frame: Input image (grayscale, BGR or BGRA).

        Returns:
            LedDetectionResult with points and the contours they came from.
        """
        mask = self.binarize(frame)
        contours = self.find_blobs(mask)
        result = centroids_from_contours(contours)

        if result.degenerate_count:
            logger.debug(f"Excluded {result.degenerate_count} zero-area blobs")
        logger.debug(f"Detected {len(result.points)} markers")

        return result

    def binarize(self, frame: np.ndarray) -> np.ndarray:
        """Threshold a frame and remove single-pixel noise.

        Args:
            frame: Input image.

        Returns:
            Binary mask (0 or 255).
        """
        gray = self._to_gray(frame)

        _, mask = cv2.threshold(gray, self.threshold, 255, cv2.THRESH_BINARY)

        # Opening with the default 3x3 neighbourhood
        if self.erode_iterations > 0:
            mask = cv2.erode(mask, None, iterations=self.erode_iterations)
        if self.dilate_iterations > 0:
            mask = cv2.dilate(mask, None, iterations=self.dilate_iterations)

        return mask

    def find_blobs(self, mask: np.ndarray) -> List[np.ndarray]:
        """Trace outer and inner blob boundaries.

        Args:
            mask: Binary mask.

        Returns:
            Compressed contours in discovery order.
        """
        contours, _ = cv2.findContours(mask, cv2.RETR_TREE, cv2.CHAIN_APPROX_SIMPLE)
        return list(contours)

    def _to_gray(self, frame: np.ndarray) -> np.ndarray:
        if frame is None or frame.size == 0:
            raise ValueError("Empty frame")

        if frame.dtype != np.uint8:
            raise ValueError(f"Unsupported frame depth: {frame.dtype}")

        if frame.ndim == 2:
            return frame
        if frame.ndim == 3 and frame.shape[2] == 1:
            return np.ascontiguousarray(frame[:, :, 0])
        if frame.ndim == 3 and frame.shape[2] == 3:
            return cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
        if frame.ndim == 3 and frame.shape[2] == 4:
            return cv2.cvtColor(frame, cv2.COLOR_BGRA2GRAY)

        raise ValueError(f"Unsupported frame shape: {frame.shape}")

    def get_detection_info(self) -> Dict[str, Any]:
        """Get detector parameters."""
        return {
            'threshold': self.threshold,
            'erode_iterations': self.erode_iterations,
            'dilate_iterations': self.dilate_iterations
        }
