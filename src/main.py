"""
Live detection overlay.

Grabs frames from the configured camera, sends them to the remote detection
service and draws the returned boxes over the live preview.

Usage:
    python src/main.py --config config/config.yaml --display

Arguments:
    --config: Path to configuration file
    --display: Open the preview window (headless otherwise)
    --endpoint: Detection service base URL (overrides inference.endpoint)
"""

import os
import sys
import argparse
import logging
from typing import Dict, Any, Tuple, Optional

import yaml

from camera.camera import inject_rtsp_credentials
from ops.logging import setup_logging
from pipeline.engine import run_from_config


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `config/default.yaml` (checked in)
    - `config/config.yaml` (local overrides)
    - plus any explicitly provided `--config` path (treated as overrides)
    """
    try:
        base_path = os.path.join(os.path.dirname(config_path), "default.yaml")
        base_cfg: Dict[str, Any] = {}
        if os.path.exists(base_path):
            with open(base_path, "r") as f:
                base_cfg = yaml.safe_load(f) or {}

        local_overrides_path = os.path.join(os.path.dirname(config_path), "config.yaml")
        local_cfg: Dict[str, Any] = {}
        if os.path.exists(local_overrides_path):
            with open(local_overrides_path, "r") as f:
                local_cfg = yaml.safe_load(f) or {}

        merged = _deep_merge(base_cfg, local_cfg)

        if os.path.exists(config_path) and os.path.abspath(config_path) != os.path.abspath(local_overrides_path):
            with open(config_path, "r") as f:
                explicit_cfg = yaml.safe_load(f) or {}
            merged = _deep_merge(merged, explicit_cfg)

        return merged
    except (OSError, yaml.YAMLError) as e:
        logging.error(f"Failed to load configuration: {e}")
        sys.exit(1)


def _is_size(value: Any) -> bool:
    return (
        isinstance(value, list)
        and len(value) == 2
        and all(isinstance(x, int) and not isinstance(x, bool) and x > 0 for x in value)
    )


def _is_positive_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    required_sections = ['camera', 'inference', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    # Camera
    camera = config.get('camera') or {}
    backend = camera.get('backend', 'opencv')
    if backend not in ('opencv', 'picamera2'):
        return False, "camera.backend must be one of: opencv, picamera2"

    device_id = camera.get('device_id', 0)
    if isinstance(device_id, bool) or not isinstance(device_id, (int, str)):
        return False, "camera.device_id must be an integer (index) or string (URL or path)"
    if isinstance(device_id, int) and device_id < 0:
        return False, "camera.device_id integer must be non-negative"

    if 'resolution' in camera and not _is_size(camera['resolution']):
        return False, "camera.resolution must be a list of [width, height] positive integers"

    if 'fps' in camera:
        fps = camera['fps']
        if isinstance(fps, bool) or not isinstance(fps, int) or fps <= 0:
            return False, "camera.fps must be a positive integer"

    if 'jpeg_quality' in camera:
        quality = camera['jpeg_quality']
        if isinstance(quality, bool) or not isinstance(quality, int) or not (1 <= quality <= 100):
            return False, "camera.jpeg_quality must be an integer between 1 and 100"

    # Inference service
    inference = config.get('inference') or {}
    endpoint = inference.get('endpoint')
    if not isinstance(endpoint, str) or not endpoint.startswith(("http://", "https://")):
        return False, "inference.endpoint must be an http:// or https:// URL"
    if 'timeout_ms' in inference and not _is_positive_number(inference['timeout_ms']):
        return False, "inference.timeout_ms must be a positive number"

    # Loop pacing
    loop = config.get('loop') or {}
    if 'interval_ms' in loop and not _is_positive_number(loop['interval_ms']):
        return False, "loop.interval_ms must be a positive number"
    if 'stats_log_interval' in loop and not _is_positive_number(loop['stats_log_interval']):
        return False, "loop.stats_log_interval must be a positive number"

    # Display surface
    display = config.get('display') or {}
    if 'resolution' in display and not _is_size(display['resolution']):
        return False, "display.resolution must be a list of [width, height] positive integers"

    # Logging
    if not isinstance(config['log_path'], str) or not config['log_path']:
        return False, "log_path must be a non-empty string"
    valid_log_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
    if config['log_level'] not in valid_log_levels:
        return False, f"log_level must be one of: {', '.join(valid_log_levels)}"

    return True, None


def main():
    """Main application function."""
    parser = argparse.ArgumentParser(description='Live Detection Overlay')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--display', action='store_true',
                        help='Open the preview window')
    parser.add_argument('--endpoint', type=str, default=None,
                        help='Detection service base URL (overrides inference.endpoint)')
    args = parser.parse_args()

    config = load_config(args.config)
    if args.endpoint:
        config.setdefault('inference', {})['endpoint'] = args.endpoint

    # Handle RTSP camera credentials if secrets_file is provided
    try:
        inject_rtsp_credentials(config.get("camera", {}))
    except (OSError, yaml.YAMLError) as e:
        logging.error(f"Error loading camera secrets: {e}")

    is_valid, error_msg = validate_config(config)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        sys.exit(1)

    setup_logging(config['log_path'], config['log_level'])
    logging.info(f"Starting Live Detection Overlay (endpoint={config['inference']['endpoint']})")

    run_from_config(config, display=args.display)


if __name__ == "__main__":
    main()
