"""
Pytest configuration and shared fixtures.
"""

import os
import sys

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
camera:
  backend: "opencv"
  device_id: 0
  resolution: [640, 480]
  fps: 30
  jpeg_quality: 70

inference:
  endpoint: "http://127.0.0.1:8000"
  timeout_ms: 5000

loop:
  interval_ms: 100

display:
  resolution: [1280, 960]

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "camera": {
            "backend": "opencv",
            "device_id": 0,
            "resolution": [1280, 720],
            "fps": 30,
            "jpeg_quality": 70,
        },
        "inference": {
            "endpoint": "http://detector.local:8000",
            "timeout_ms": 5000,
        },
        "loop": {
            "interval_ms": 100,
        },
        "display": {
            "resolution": [1280, 960],
        },
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }
