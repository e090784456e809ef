"""
================================================================================
POSE INFERENCE ADAPTER
================================================================================
Wraps a PoseDetector backend behind one contract:

    await adapter.initialize()          # once; raises InitError
    await adapter.detect(image)         # LandmarkSet or None

Per-frame detector failures are folded into "no pose" so a single bad frame
never interrupts an extraction. A backend that reports itself unusable
(DetectorUnavailable) is escalated instead.
================================================================================
"""

import asyncio
import time
from typing import List, Optional

import numpy as np

from configs.config import DetectorConfig
from posereplay.detectors import PoseDetector, create_detector
from posereplay.errors import DetectError, DetectorUnavailable, InitError, NotInitialized
from posereplay.landmarks import LandmarkSet
from posereplay.logger import get_logger
from posereplay.runtime import run_to_completion

logger = get_logger(__name__)


class PoseInferenceAdapter:
    """
    Serialized, initialize-once front for a pose detector.

    At most one detect() call runs at a time per adapter; concurrent callers
    queue on an asyncio lock. A cancelled caller keeps the lock until the
    backend call it started has actually returned.

    Example:
        >>> adapter = PoseInferenceAdapter(SimulatedPoseDetector(seed=0))
        >>> await adapter.initialize()
        >>> landmarks = await adapter.detect(frame)
    """

    def __init__(self, detector: PoseDetector):
        self.detector = detector
        self.initialized = False
        self._lock = asyncio.Lock()
        self._inference_times: List[float] = []

    @property
    def backend_name(self) -> str:
        return self.detector.name

    async def initialize(self) -> None:
        """
        Bring the detector up. No-op once it has succeeded.

        A failed attempt is not retried here; the next explicit call (for a
        new upload) tries again.
        """
        async with self._lock:
            if self.initialized:
                return

            logger.info(f"Initializing pose detector: {self.backend_name}")
            try:
                await self.detector.initialize()
            except InitError:
                logger.error(f"Pose detector '{self.backend_name}' failed to initialize")
                raise
            except Exception as e:
                logger.error(f"Pose detector '{self.backend_name}' failed to initialize: {e}")
                raise InitError(f"Failed to initialize pose detector '{self.backend_name}': {e}") from e

            self.initialized = True
            logger.info(f"Pose detector ready: {self.backend_name}")

    async def detect(self, image: np.ndarray) -> Optional[LandmarkSet]:
        """Return the landmark set for one image, or None if no pose."""
        if not self.initialized:
            raise NotInitialized("Detector not initialized. Call initialize() first.")

        async with self._lock:
            start_time = time.perf_counter()
            try:
                landmarks = await run_to_completion(self.detector.detect(image))
            except DetectorUnavailable:
                self.initialized = False
                logger.error(f"Pose detector '{self.backend_name}' became unavailable")
                raise
            except DetectError as e:
                logger.debug(f"Frame skipped: {e}")
                return None
            finally:
                self._inference_times.append(time.perf_counter() - start_time)

        return landmarks

    async def close(self) -> None:
        async with self._lock:
            await self.detector.close()
            self.initialized = False

    def get_average_fps(self) -> float:
        if not self._inference_times:
            return 0.0
        avg_time = sum(self._inference_times) / len(self._inference_times)
        return 1.0 / avg_time if avg_time > 0 else 0.0

    def reset_timing_stats(self) -> None:
        self._inference_times.clear()


def create_adapter(config: Optional[DetectorConfig] = None) -> PoseInferenceAdapter:
    """Create an adapter around the configured backend (not yet initialized)."""
    return PoseInferenceAdapter(create_detector(config))
