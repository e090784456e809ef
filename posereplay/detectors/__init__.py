"""
Pose detector backends.

Every backend implements the PoseDetector capability, so the pipeline can
swap on-device, remote, and simulated detection without changes. Pick one
with create_detector() when a session starts.
"""
from typing import Optional

from configs.config import DetectorConfig
from posereplay.detectors.base import PoseDetector
from posereplay.detectors.mediapipe_detector import MediaPipePoseDetector
from posereplay.detectors.remote import RemotePoseDetector, parse_landmarks
from posereplay.detectors.simulated import NullPoseDetector, SimulatedPoseDetector


def create_detector(config: Optional[DetectorConfig] = None) -> PoseDetector:
    """Build the detector named by config.backend."""
    config = config or DetectorConfig()

    if config.backend == "mediapipe":
        return MediaPipePoseDetector(
            model_path=config.model_path,
            min_pose_detection_confidence=config.min_pose_detection_confidence,
            min_pose_presence_confidence=config.min_pose_presence_confidence,
            min_tracking_confidence=config.min_tracking_confidence,
        )
    if config.backend == "remote":
        return RemotePoseDetector(config.remote_url, timeout_s=config.remote_timeout_s)
    if config.backend == "simulated":
        return SimulatedPoseDetector(
            seed=config.simulated_seed,
            detection_rate=config.simulated_detection_rate,
        )
    if config.backend == "null":
        return NullPoseDetector()

    raise ValueError(f"Unknown detector backend: {config.backend}")


__all__ = [
    "PoseDetector",
    "MediaPipePoseDetector",
    "RemotePoseDetector",
    "NullPoseDetector",
    "SimulatedPoseDetector",
    "create_detector",
    "parse_landmarks",
]
