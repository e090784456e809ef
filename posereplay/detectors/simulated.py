from typing import Optional

import numpy as np

from posereplay.detectors.base import PoseDetector
from posereplay.landmarks import NUM_LANDMARKS, LandmarkSet


class NullPoseDetector(PoseDetector):
    """Detector for environments with no pose backend: never finds a pose."""

    name = "null"

    async def initialize(self) -> None:
        return None

    async def detect(self, image: np.ndarray) -> Optional[LandmarkSet]:
        return None


class SimulatedPoseDetector(PoseDetector):
    """
    Produces random but well-formed landmark sets.

    Useful for demos and UI work without a model file. Positions are uniform
    over the frame, depth is small, visibility is high.
    """

    name = "simulated"

    def __init__(self, seed: Optional[int] = None, detection_rate: float = 1.0):
        if not 0 <= detection_rate <= 1:
            raise ValueError("detection_rate must be between 0 and 1")
        self.seed = seed
        self.detection_rate = detection_rate
        self._rng: Optional[np.random.Generator] = None

    async def initialize(self) -> None:
        if self._rng is None:
            self._rng = np.random.default_rng(self.seed)

    async def detect(self, image: np.ndarray) -> Optional[LandmarkSet]:
        rng = self._rng
        if rng.random() >= self.detection_rate:
            return None

        rows = np.column_stack([
            rng.random(NUM_LANDMARKS),               # x
            rng.random(NUM_LANDMARKS),               # y
            rng.random(NUM_LANDMARKS) * 0.1,         # z
            0.8 + rng.random(NUM_LANDMARKS) * 0.2,   # visibility
        ])
        return LandmarkSet.from_array(rows)
