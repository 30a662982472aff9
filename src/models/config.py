"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from .detection import FrameDimensions


@dataclass
class CameraConfig:
    """Camera configuration."""
    backend: str = "opencv"
    device_id: Union[int, str] = 0
    secrets_file: Optional[str] = None
    resolution: List[int] = field(default_factory=lambda: [1280, 720])
    fps: int = 30
    jpeg_quality: int = 70
    fallback_to_any: bool = True
    swap_rb: bool = False
    rotate: int = 0
    flip_horizontal: bool = False
    flip_vertical: bool = False

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CameraConfig":
        """Adapter: Create from config dictionary."""
        return cls(
            backend=d.get("backend", "opencv"),
            device_id=d.get("device_id", 0),
            secrets_file=d.get("secrets_file"),
            resolution=d.get("resolution", [1280, 720]),
            fps=d.get("fps", 30),
            jpeg_quality=d.get("jpeg_quality", 70),
            fallback_to_any=d.get("fallback_to_any", True),
            swap_rb=d.get("swap_rb", False),
            rotate=d.get("rotate", 0) or 0,
            flip_horizontal=d.get("flip_horizontal", False),
            flip_vertical=d.get("flip_vertical", False),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "backend": self.backend,
            "device_id": self.device_id,
            "secrets_file": self.secrets_file,
            "resolution": self.resolution,
            "fps": self.fps,
            "jpeg_quality": self.jpeg_quality,
            "fallback_to_any": self.fallback_to_any,
            "swap_rb": self.swap_rb,
            "rotate": self.rotate,
            "flip_horizontal": self.flip_horizontal,
            "flip_vertical": self.flip_vertical,
        }


@dataclass
class InferenceConfig:
    """Remote detection service configuration."""
    endpoint: str = "http://127.0.0.1:8000"
    timeout_ms: float = 5000.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "InferenceConfig":
        return cls(
            endpoint=d.get("endpoint", "http://127.0.0.1:8000"),
            timeout_ms=d.get("timeout_ms", 5000.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "endpoint": self.endpoint,
            "timeout_ms": self.timeout_ms,
        }

    @property
    def timeout_s(self) -> float:
        return float(self.timeout_ms) / 1000.0


@dataclass
class LoopConfig:
    """Capture-infer-render loop pacing."""
    interval_ms: float = 100.0
    stats_log_interval: float = 60.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "LoopConfig":
        return cls(
            interval_ms=d.get("interval_ms", 100.0),
            stats_log_interval=d.get("stats_log_interval", 60.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "interval_ms": self.interval_ms,
            "stats_log_interval": self.stats_log_interval,
        }

    @property
    def interval_s(self) -> float:
        return float(self.interval_ms) / 1000.0


@dataclass
class DisplayConfig:
    """Rendering surface configuration."""
    resolution: List[int] = field(default_factory=lambda: [1280, 720])
    window_name: str = "Live Detection Overlay"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DisplayConfig":
        return cls(
            resolution=d.get("resolution", [1280, 720]),
            window_name=d.get("window_name", "Live Detection Overlay"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resolution": self.resolution,
            "window_name": self.window_name,
        }

    @property
    def dims(self) -> FrameDimensions:
        return FrameDimensions(width=int(self.resolution[0]), height=int(self.resolution[1]))


@dataclass
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    camera: CameraConfig = field(default_factory=CameraConfig)
    inference: InferenceConfig = field(default_factory=InferenceConfig)
    loop: LoopConfig = field(default_factory=LoopConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    log_path: str = "logs/live_overlay.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        return cls(
            camera=CameraConfig.from_dict(d.get("camera", {}) or {}),
            inference=InferenceConfig.from_dict(d.get("inference", {}) or {}),
            loop=LoopConfig.from_dict(d.get("loop", {}) or {}),
            display=DisplayConfig.from_dict(d.get("display", {}) or {}),
            log_path=d.get("log_path", "logs/live_overlay.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary (for saving or passing to existing code)."""
        return {
            "camera": self.camera.to_dict(),
            "inference": self.inference.to_dict(),
            "loop": self.loop.to_dict(),
            "display": self.display.to_dict(),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
