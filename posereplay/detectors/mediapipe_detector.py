import asyncio
from pathlib import Path
from typing import Optional, Union

import numpy as np
import cv2

from posereplay.detectors.base import PoseDetector
from posereplay.errors import DetectError, DetectorUnavailable, InitError
from posereplay.landmarks import NUM_LANDMARKS, LandmarkSet
from posereplay.logger import get_logger

logger = get_logger(__name__)


class MediaPipePoseDetector(PoseDetector):
    """
    On-device detector using the MediaPipe Tasks PoseLandmarker.

    Notes:
    - Runs in IMAGE mode: every frame is independent, no tracking state.
    - Only the first detected pose is kept (num_poses=1).
    - MediaPipe is imported lazily so other backends work without it.
    """

    name = "mediapipe"

    def __init__(
        self,
        model_path: Union[str, Path] = "pose_landmarker_lite.task",
        min_pose_detection_confidence: float = 0.5,
        min_pose_presence_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
    ) -> None:
        self.model_path = Path(model_path)
        self.min_pose_detection_confidence = float(min_pose_detection_confidence)
        self.min_pose_presence_confidence = float(min_pose_presence_confidence)
        self.min_tracking_confidence = float(min_tracking_confidence)
        self._mp = None
        self._landmarker = None

    async def initialize(self) -> None:
        if self._landmarker is not None:
            return
        await asyncio.to_thread(self._create_landmarker)

    def _create_landmarker(self) -> None:
        try:
            import mediapipe as mp
            from mediapipe.tasks import python as mp_tasks
            from mediapipe.tasks.python import vision
        except ImportError as e:
            raise InitError("MediaPipe is not installed. Install with: pip install mediapipe") from e

        if not self.model_path.exists():
            raise InitError(
                f"Pose model not found: {self.model_path}. "
                f"Run: python download_model.py"
            )

        logger.info(f"Loading MediaPipe pose model: {self.model_path.name}")
        options = vision.PoseLandmarkerOptions(
            base_options=mp_tasks.BaseOptions(model_asset_path=str(self.model_path)),
            running_mode=vision.RunningMode.IMAGE,
            num_poses=1,
            min_pose_detection_confidence=self.min_pose_detection_confidence,
            min_pose_presence_confidence=self.min_pose_presence_confidence,
            min_tracking_confidence=self.min_tracking_confidence,
        )
        try:
            self._landmarker = vision.PoseLandmarker.create_from_options(options)
        except (RuntimeError, ValueError) as e:
            raise InitError(f"Failed to initialize MediaPipe: {e}") from e
        self._mp = mp

    async def detect(self, image: np.ndarray) -> Optional[LandmarkSet]:
        if self._landmarker is None:
            raise DetectorUnavailable("MediaPipe landmarker is not loaded")
        return await asyncio.to_thread(self._detect_sync, image)

    def _detect_sync(self, image: np.ndarray) -> Optional[LandmarkSet]:
        # Convert BGR → RGB for mediapipe
        rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        mp_image = self._mp.Image(image_format=self._mp.ImageFormat.SRGB, data=np.ascontiguousarray(rgb))

        try:
            result = self._landmarker.detect(mp_image)
        except (RuntimeError, ValueError) as e:
            raise DetectError(f"MediaPipe detection failed: {e}") from e

        if result is None or not result.pose_landmarks:
            return None

        pose = result.pose_landmarks[0]
        if len(pose) != NUM_LANDMARKS:
            raise DetectError(f"MediaPipe returned {len(pose)} landmarks")

        return LandmarkSet.from_rows(
            (p.x, p.y, p.z, p.visibility if p.visibility is not None else 0.0)
            for p in pose
        )

    async def close(self) -> None:
        landmarker, self._landmarker = self._landmarker, None
        if landmarker is not None:
            landmarker.close()
