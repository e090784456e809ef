from abc import ABC, abstractmethod
from typing import Optional

import numpy as np

from posereplay.landmarks import LandmarkSet


class PoseDetector(ABC):
    """
    Pose detector capability.

    Implementations take a BGR image (H,W,3 uint8) and return a full 33-point
    LandmarkSet for the most prominent person, or None when no pose is found.

    - initialize() raises InitError (or any exception) when the backend cannot
      be brought up.
    - detect() raises DetectError for a transient per-frame failure and
      DetectorUnavailable when the backend has stopped working altogether.
    """

    name: str = "base"

    @abstractmethod
    async def initialize(self) -> None: ...

    @abstractmethod
    async def detect(self, image: np.ndarray) -> Optional[LandmarkSet]: ...

    async def close(self) -> None:
        return None
