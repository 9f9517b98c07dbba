"""Storage for normalized marker layouts."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from config.settings import Point
from .normalizer import normalize_layout

logger = logging.getLogger(__name__)


def _format_locations(points: Sequence[Point]) -> str:
    return " ".join(f"({round(p.x)}, {round(p.y)})" for p in points)


class LayoutStore:
    """Normalizes point sets and keeps them as JSON records."""

    def __init__(self, layout_dir: Path):
        """Initialize layout store.

        Args:
            layout_dir: Directory to store layout files.
        """
        self.layout_dir = Path(layout_dir)
        self.layout_dir.mkdir(parents=True, exist_ok=True)
        self.latest_file = self.layout_dir / "latest_layout.json"

        logger.info(f"Layout store initialized: {self.layout_dir}")

    def store(self, points: Sequence[Point]) -> Optional[Path]:
        """Normalize points and write the layout.

        Args:
            points: Points in pixel space.

        Returns:
            Path of the written layout, or None if the points have no
            usable extent.
        """
        try:
            layout = normalize_layout(points)
        except ValueError as e:
            logger.warning(f"Layout not stored: {e}")
            return None

        logger.info(f"Locations: {_format_locations(points)}")
        logger.info(f"Scale: {layout.scale}")
        logger.debug(f"Scaled locations: {layout.points}")

        now = datetime.now()
        record = {
            'timestamp': now.isoformat(),
            'scale': layout.scale,
            'origin': layout.origin.to_dict(),
            'points': [p.to_dict() for p in points],
            'normalized': [p.to_dict() for p in layout.points]
        }

        file_path = self.layout_dir / f"layout_{now.strftime('%Y%m%d_%H%M%S_%f')}.json"
        for target in (file_path, self.latest_file):
            with open(target, 'w') as f:
                json.dump(record, f, indent=2)

        logger.info(f"Layout with {len(points)} markers stored to {file_path}")
        return file_path

    def load_latest(self) -> Optional[Dict[str, Any]]:
        """Load the most recently stored layout record."""
        if not self.latest_file.exists():
            return None

        try:
            with open(self.latest_file, 'r') as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading latest layout: {e}")
            return None

    def load_normalized(self) -> Optional[List[Point]]:
        """Normalized points of the latest layout."""
        record = self.load_latest()
        if record is None:
            return None
        return [Point.from_dict(p) for p in record.get('normalized', [])]

    def list_layouts(self) -> List[Path]:
        """Stored layout files, oldest first."""
        return sorted(self.layout_dir.glob("layout_*.json"))
