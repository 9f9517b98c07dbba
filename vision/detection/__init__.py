"""Detection module for bright LED markers."""

from .led_detector import LedDetector, LedDetectionResult, PointSet, centroids_from_contours

__all__ = ['LedDetector', 'LedDetectionResult', 'PointSet', 'centroids_from_contours']
