"""
================================================================================
POSE REPLAY CONFIGURATION
================================================================================
This configuration file centralizes all settings for the pose extraction and
playback pipeline. Modify these values to customize behavior without touching
core logic.

Project: Pose Replay (frame-sampled pose extraction + synchronized playback)
Backend: MediaPipe Tasks PoseLandmarker (33 landmarks, single person)

CONFIGURATION SECTIONS:
    1. Sampling Settings - Frame sampling rate and resizing
    2. Detector Settings - Pose detector backend selection
    3. Thumbnail Settings - Stored still images per frame record
    4. Playback Settings - Visual playback cadence
    5. Overlay Settings - Marker placement and colors
    6. Logging Settings - Log verbosity
================================================================================
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple
from pathlib import Path


# ==============================================================================
# SECTION 1: SAMPLING SETTINGS
# ==============================================================================
# Frames are drawn from the source video at a fixed sampling rate, not at the
# video's native frame rate. 10 samples/second is plenty for replaying a
# movement and keeps extraction time proportional to duration.
# ==============================================================================

@dataclass
class SamplingConfig:
    """
    Frame sampling configuration.

    Attributes:
        frame_rate: Samples per second drawn from the video
        max_dimension: Resize decoded frames if larger (None = no resize)
        supported_formats: Video file extensions accepted for upload
    """
    frame_rate: float = 10.0

    # ---------------------------------------------------------------------------
    # Resolution Handling
    # ---------------------------------------------------------------------------
    # Pose landmarkers resize internally; downscaling 4K input first saves
    # decode memory without changing normalized landmark coordinates.
    # ---------------------------------------------------------------------------
    max_dimension: Optional[int] = None

    supported_formats: Tuple[str, ...] = (".mp4", ".mov", ".avi", ".mkv", ".m4v")


# ==============================================================================
# SECTION 2: DETECTOR SETTINGS
# ==============================================================================
# Backends:
#   - mediapipe: On-device MediaPipe PoseLandmarker (.task model bundle)
#   - remote:    HTTP pose service (POST JPEG, receive 33 landmarks)
#   - simulated: Random synthetic landmarks, for demos without a model
#   - null:      Never detects a pose
#
# Model bundles (download with download_model.py):
#   - pose_landmarker_lite.task:  Fastest [DEFAULT]
#   - pose_landmarker_full.task:  Balanced
#   - pose_landmarker_heavy.task: Most accurate, slowest
# ==============================================================================

DETECTOR_BACKENDS: Tuple[str, ...] = ("mediapipe", "remote", "simulated", "null")


@dataclass
class DetectorConfig:
    """
    Pose detector configuration.

    The backend is chosen once when a session starts; the rest of the
    pipeline never checks which one is active.

    Attributes:
        backend: One of DETECTOR_BACKENDS
        model_path: MediaPipe .task model bundle
        min_pose_detection_confidence: Minimum person detection score (0-1)
        min_pose_presence_confidence: Minimum pose presence score (0-1)
        min_tracking_confidence: Minimum tracking score (0-1)
        remote_url: Base URL of the remote pose service
        remote_timeout_s: Per-request timeout for the remote service
        simulated_seed: RNG seed for the simulated backend (None = random)
        simulated_detection_rate: Fraction of frames the simulated backend
            reports a pose for
    """
    backend: str = "mediapipe"
    model_path: Path = field(default_factory=lambda: Path("pose_landmarker_lite.task"))

    # ---------------------------------------------------------------------------
    # Detection Parameters
    # ---------------------------------------------------------------------------
    # Lower thresholds keep more poses at the cost of spurious detections.
    # 0.5 works well for a single, clearly visible person.
    # ---------------------------------------------------------------------------
    min_pose_detection_confidence: float = 0.5
    min_pose_presence_confidence: float = 0.5
    min_tracking_confidence: float = 0.5

    remote_url: Optional[str] = None
    remote_timeout_s: float = 10.0

    simulated_seed: Optional[int] = None
    simulated_detection_rate: float = 1.0


# ==============================================================================
# SECTION 3: THUMBNAIL SETTINGS
# ==============================================================================
# Each frame record keeps a downscaled JPEG of its frame for playback and the
# thumbnail strip. Full-resolution frames are never retained.
# ==============================================================================

@dataclass
class ThumbnailConfig:
    """Still-image settings for frame records."""

    enabled: bool = True
    width: int = 640
    height: int = 360
    jpeg_quality: int = 75


# ==============================================================================
# SECTION 4: PLAYBACK SETTINGS
# ==============================================================================

@dataclass
class PlaybackConfig:
    """
    Playback cadence.

    The tick interval is independent of the sampling rate: a video sampled at
    5 Hz still replays at one record per tick.
    """

    tick_interval_ms: int = 100  # 10 visual fps

    @property
    def tick_interval(self) -> float:
        return self.tick_interval_ms / 1000.0


# ==============================================================================
# SECTION 5: OVERLAY SETTINGS
# ==============================================================================

@dataclass
class OverlayConfig:
    """Overlay drawing configuration (colors are BGR for OpenCV)."""

    viewport_width: int = 640
    viewport_height: int = 360
    marker_radius: int = 5
    marker_outline_color: Tuple[int, int, int] = (255, 255, 255)
    marker_outline_thickness: int = 1
    draw_skeleton: bool = True
    skeleton_color: Tuple[int, int, int] = (255, 255, 255)
    skeleton_thickness: int = 2


# ==============================================================================
# SECTION 6: LOGGING SETTINGS
# ==============================================================================

@dataclass
class LoggingConfig:
    """Log level for the posereplay logger hierarchy."""

    level: str = "INFO"


# ==============================================================================
# MASTER CONFIGURATION CLASS
# ==============================================================================

@dataclass
class PoseReplayConfig:
    """
    Master configuration class combining all settings.

    Usage:
        >>> config = PoseReplayConfig()
        >>> config.detector.backend = "simulated"
        >>> config.print_summary()
    """

    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    detector: DetectorConfig = field(default_factory=DetectorConfig)
    thumbnails: ThumbnailConfig = field(default_factory=ThumbnailConfig)
    playback: PlaybackConfig = field(default_factory=PlaybackConfig)
    overlay: OverlayConfig = field(default_factory=OverlayConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Check value ranges; raises ValueError on the first bad setting."""
        if self.sampling.frame_rate <= 0:
            raise ValueError("frame_rate must be positive")
        if self.detector.backend not in DETECTOR_BACKENDS:
            raise ValueError(
                f"Unknown detector backend '{self.detector.backend}'. "
                f"Choose from: {list(DETECTOR_BACKENDS)}"
            )
        for name in (
            "min_pose_detection_confidence",
            "min_pose_presence_confidence",
            "min_tracking_confidence",
            "simulated_detection_rate",
        ):
            if not 0 <= getattr(self.detector, name) <= 1:
                raise ValueError(f"{name} must be between 0 and 1")
        if not 0 <= self.thumbnails.jpeg_quality <= 100:
            raise ValueError("jpeg_quality must be between 0 and 100")
        if self.playback.tick_interval_ms <= 0:
            raise ValueError("tick_interval_ms must be positive")
        if self.overlay.viewport_width <= 0 or self.overlay.viewport_height <= 0:
            raise ValueError("viewport dimensions must be positive")

    def print_summary(self) -> None:
        """Print a summary of current configuration."""
        print("\n" + "=" * 60)
        print("POSE REPLAY CONFIGURATION SUMMARY")
        print("=" * 60)
        print(f"\n[Sampling]")
        print(f"  Frame Rate: {self.sampling.frame_rate} samples/s")
        print(f"  Max Dimension: {self.sampling.max_dimension}")
        print(f"\n[Detector]")
        print(f"  Backend: {self.detector.backend}")
        if self.detector.backend == "mediapipe":
            print(f"  Model: {self.detector.model_path}")
        elif self.detector.backend == "remote":
            print(f"  URL: {self.detector.remote_url}")
        print(f"\n[Playback]")
        print(f"  Tick Interval: {self.playback.tick_interval_ms} ms")
        print(f"\n[Thumbnails]")
        print(f"  Enabled: {self.thumbnails.enabled} "
              f"({self.thumbnails.width}x{self.thumbnails.height} q{self.thumbnails.jpeg_quality})")
        print("=" * 60 + "\n")


# ==============================================================================
# PRESET FACTORIES
# ==============================================================================

def get_fast_config() -> PoseReplayConfig:
    """Speed-optimized configuration."""
    config = PoseReplayConfig()
    config.sampling.frame_rate = 5.0
    config.sampling.max_dimension = 720
    config.thumbnails.width = 320
    config.thumbnails.height = 180
    return config


def get_accurate_config() -> PoseReplayConfig:
    """Accuracy-optimized configuration."""
    config = PoseReplayConfig()
    config.detector.model_path = Path("pose_landmarker_heavy.task")
    config.sampling.frame_rate = 15.0
    return config


def get_offline_config() -> PoseReplayConfig:
    """Runs without a model file, using synthetic landmarks."""
    config = PoseReplayConfig()
    config.detector.backend = "simulated"
    return config


if __name__ == "__main__":
    config = PoseReplayConfig()
    config.print_summary()
