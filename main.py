#!/usr/bin/env python3
"""
LED Layout Calibrator

Locates bright LED markers in camera frames and exchanges multi-frame
calibration datasets with a remote controller over MQTT.
"""

import sys
from pathlib import Path

# Add current directory to Python path
sys.path.insert(0, str(Path(__file__).parent))

from core.application import main

if __name__ == "__main__":
    main()
