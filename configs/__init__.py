"""Configuration package for pose extraction and playback."""
from configs.config import (
    PoseReplayConfig,
    SamplingConfig,
    DetectorConfig,
    ThumbnailConfig,
    PlaybackConfig,
    OverlayConfig,
    LoggingConfig,
    DETECTOR_BACKENDS,
    get_fast_config,
    get_accurate_config,
    get_offline_config,
)
