"""
================================================================================
POSE LANDMARK DEFINITIONS
================================================================================
MediaPipe pose landmarkers output 33 landmarks per person, always in the same
anatomical order. Coordinates are normalized to the source frame:

    0: NOSE              11: LEFT_SHOULDER    22: RIGHT_THUMB
    1: LEFT_EYE_INNER    12: RIGHT_SHOULDER   23: LEFT_HIP
    2: LEFT_EYE          13: LEFT_ELBOW       24: RIGHT_HIP
    3: LEFT_EYE_OUTER    14: RIGHT_ELBOW      25: LEFT_KNEE
    4: RIGHT_EYE_INNER   15: LEFT_WRIST       26: RIGHT_KNEE
    5: RIGHT_EYE         16: RIGHT_WRIST      27: LEFT_ANKLE
    6: RIGHT_EYE_OUTER   17: LEFT_PINKY       28: RIGHT_ANKLE
    7: LEFT_EAR          18: RIGHT_PINKY      29: LEFT_HEEL
    8: RIGHT_EAR         19: LEFT_INDEX       30: RIGHT_HEEL
    9: MOUTH_LEFT        20: RIGHT_INDEX      31: LEFT_FOOT_INDEX
   10: MOUTH_RIGHT       21: LEFT_THUMB       32: RIGHT_FOOT_INDEX
================================================================================
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, List, Sequence, Tuple, Union, overload

import numpy as np


POSE_LANDMARK_NAMES: Tuple[str, ...] = (
    "NOSE",
    "LEFT_EYE_INNER",
    "LEFT_EYE",
    "LEFT_EYE_OUTER",
    "RIGHT_EYE_INNER",
    "RIGHT_EYE",
    "RIGHT_EYE_OUTER",
    "LEFT_EAR",
    "RIGHT_EAR",
    "MOUTH_LEFT",
    "MOUTH_RIGHT",
    "LEFT_SHOULDER",
    "RIGHT_SHOULDER",
    "LEFT_ELBOW",
    "RIGHT_ELBOW",
    "LEFT_WRIST",
    "RIGHT_WRIST",
    "LEFT_PINKY",
    "RIGHT_PINKY",
    "LEFT_INDEX",
    "RIGHT_INDEX",
    "LEFT_THUMB",
    "RIGHT_THUMB",
    "LEFT_HIP",
    "RIGHT_HIP",
    "LEFT_KNEE",
    "RIGHT_KNEE",
    "LEFT_ANKLE",
    "RIGHT_ANKLE",
    "LEFT_HEEL",
    "RIGHT_HEEL",
    "LEFT_FOOT_INDEX",
    "RIGHT_FOOT_INDEX",
)

NUM_LANDMARKS = len(POSE_LANDMARK_NAMES)

# ------------------------------------------------------------------------------
# Skeleton Connections
# Each tuple is (start_landmark_idx, end_landmark_idx)
# ------------------------------------------------------------------------------
POSE_CONNECTIONS: Tuple[Tuple[int, int], ...] = (
    # Face
    (0, 1), (1, 2), (2, 3), (3, 7), (0, 4), (4, 5), (5, 6), (6, 8), (9, 10),
    # Torso
    (11, 12), (11, 23), (12, 24), (23, 24),
    # Left arm + hand
    (11, 13), (13, 15), (15, 17), (15, 19), (15, 21), (17, 19),
    # Right arm + hand
    (12, 14), (14, 16), (16, 18), (16, 20), (16, 22), (18, 20),
    # Left leg + foot
    (23, 25), (25, 27), (27, 29), (29, 31), (27, 31),
    # Right leg + foot
    (24, 26), (26, 28), (28, 30), (30, 32), (28, 32),
)

FACE_PARTS: Tuple[str, ...] = ("NOSE", "EYE", "EAR")


class BodySide(str, Enum):
    LEFT = "left"
    RIGHT = "right"
    CENTER = "center"


def body_side(name: str) -> BodySide:
    """Side tag for a landmark name (MOUTH_LEFT is left, NOSE is center)."""
    if "LEFT" in name:
        return BodySide.LEFT
    if "RIGHT" in name:
        return BodySide.RIGHT
    return BodySide.CENTER


def is_face_landmark(name: str) -> bool:
    return any(part in name for part in FACE_PARTS)


@dataclass(frozen=True)
class Landmark:
    """A single tracked body point in normalized frame coordinates."""
    name: str
    x: float
    y: float
    z: float
    visibility: float

    @property
    def side(self) -> BodySide:
        return body_side(self.name)


@dataclass(frozen=True)
class LandmarkSet(Sequence):
    """
    Exactly 33 landmarks in the fixed anatomical order.

    There are no partial sets: a detector either produces a full set or
    nothing at all, so construction fails for any other count or ordering.
    """
    landmarks: Tuple[Landmark, ...]

    def __post_init__(self):
        landmarks = tuple(self.landmarks)
        if len(landmarks) != NUM_LANDMARKS:
            raise ValueError(
                f"Landmark set must contain {NUM_LANDMARKS} entries, got {len(landmarks)}"
            )
        for idx, (landmark, expected) in enumerate(zip(landmarks, POSE_LANDMARK_NAMES)):
            if landmark.name != expected:
                raise ValueError(
                    f"Landmark {idx} must be {expected}, got {landmark.name}"
                )
        object.__setattr__(self, "landmarks", landmarks)

    @classmethod
    def from_rows(cls, rows: Iterable[Sequence[float]]) -> "LandmarkSet":
        """Build a set from (x, y, z, visibility) rows in anatomical order."""
        rows = list(rows)
        if len(rows) != NUM_LANDMARKS:
            raise ValueError(
                f"Landmark set must contain {NUM_LANDMARKS} entries, got {len(rows)}"
            )
        return cls(tuple(
            Landmark(
                name=name,
                x=float(row[0]),
                y=float(row[1]),
                z=float(row[2]),
                visibility=float(row[3]),
            )
            for name, row in zip(POSE_LANDMARK_NAMES, rows)
        ))

    @classmethod
    def from_array(cls, array: np.ndarray) -> "LandmarkSet":
        array = np.asarray(array, dtype=float)
        if array.shape != (NUM_LANDMARKS, 4):
            raise ValueError(f"Expected array of shape ({NUM_LANDMARKS}, 4), got {array.shape}")
        return cls.from_rows(array.tolist())

    def to_array(self) -> np.ndarray:
        """(33, 4) array of x, y, z, visibility."""
        return np.array(
            [[lm.x, lm.y, lm.z, lm.visibility] for lm in self.landmarks],
            dtype=float,
        )

    @property
    def mean_visibility(self) -> float:
        return float(np.mean([lm.visibility for lm in self.landmarks]))

    def get(self, name: str) -> Landmark:
        return self.landmarks[POSE_LANDMARK_NAMES.index(name)]

    @overload
    def __getitem__(self, index: int) -> Landmark: ...

    @overload
    def __getitem__(self, index: slice) -> Tuple[Landmark, ...]: ...

    def __getitem__(self, index: Union[int, slice]):
        return self.landmarks[index]

    def __len__(self) -> int:
        return len(self.landmarks)

    def __iter__(self) -> Iterator[Landmark]:
        return iter(self.landmarks)

    def names(self) -> List[str]:
        return [lm.name for lm in self.landmarks]
