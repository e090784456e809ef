"""
================================================================================
FRAME RECORD ASSEMBLER
================================================================================
Drives the frame sampler and the pose inference adapter together:

    pull next sample -> await detection -> append record or skip

Samples are processed strictly one after another; the detector is
single-flight, so extraction time grows linearly with duration * frame_rate.
Frames without a detected pose are dropped, not stored as empty records, so
record indices are dense over detected frames only.
================================================================================
"""

import base64
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

import numpy as np
import cv2

from configs.config import ThumbnailConfig
from posereplay.landmarks import LandmarkSet
from posereplay.logger import get_logger
from posereplay.pose_estimator import PoseInferenceAdapter
from posereplay.video_processor import (
    DEFAULT_FRAME_RATE,
    FrameSampler,
    VideoHandle,
    sample_count,
)

logger = get_logger(__name__)

ProgressCallback = Callable[[int, int], None]


# ==============================================================================
# DATA STRUCTURES
# ==============================================================================

@dataclass(frozen=True)
class FrameImage:
    """A downscaled JPEG still of a sampled frame."""
    jpeg: bytes
    width: int
    height: int

    def to_array(self) -> np.ndarray:
        """Decode back to a BGR image."""
        return cv2.imdecode(np.frombuffer(self.jpeg, dtype=np.uint8), cv2.IMREAD_COLOR)

    def to_data_uri(self) -> str:
        return "data:image/jpeg;base64," + base64.b64encode(self.jpeg).decode()


@dataclass(frozen=True)
class FrameRecord:
    """One sampled instant with a detected pose."""
    timestamp_ms: float
    landmarks: LandmarkSet
    frame_image: Optional[FrameImage] = None

    @property
    def timestamp(self) -> float:
        """Seconds from video start."""
        return self.timestamp_ms / 1000.0

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dictionary (image omitted)."""
        return {
            "timestamp_ms": self.timestamp_ms,
            "landmarks": [
                {"name": lm.name, "x": lm.x, "y": lm.y, "z": lm.z, "visibility": lm.visibility}
                for lm in self.landmarks
            ],
        }


def encode_thumbnail(frame: np.ndarray, config: ThumbnailConfig) -> Optional[FrameImage]:
    """Scale a frame to the thumbnail size and JPEG-encode it."""
    if not config.enabled:
        return None

    scaled = cv2.resize(frame, (config.width, config.height), interpolation=cv2.INTER_AREA)
    ok, buffer = cv2.imencode(".jpg", scaled, [cv2.IMWRITE_JPEG_QUALITY, config.jpeg_quality])
    if not ok:
        logger.warning("Could not encode frame thumbnail; record stored without image")
        return None
    return FrameImage(jpeg=buffer.tobytes(), width=config.width, height=config.height)


# ==============================================================================
# ASSEMBLER
# ==============================================================================

class FrameRecordAssembler:
    """
    Builds the ordered, immutable FrameRecord sequence for one video.

    Example:
        >>> assembler = FrameRecordAssembler(adapter, FrameSampler(OpenCVVideoSource()))
        >>> records = await assembler.assemble(handle, frame_rate=10)
        >>> print(f"{len(records)} frames with a pose")
    """

    def __init__(
        self,
        adapter: PoseInferenceAdapter,
        sampler: FrameSampler,
        thumbnails: Optional[ThumbnailConfig] = None,
    ):
        self.adapter = adapter
        self.sampler = sampler
        self.thumbnails = thumbnails or ThumbnailConfig()

    async def assemble(
        self,
        handle: VideoHandle,
        frame_rate: float = DEFAULT_FRAME_RATE,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Tuple[FrameRecord, ...]:
        """
        Extract pose records from an opened video.

        Args:
            handle: Opened video handle
            frame_rate: Samples per second
            on_progress: Called with (0, samples_total) up front, then with
                (samples_done, samples_total) after each sampled timestamp

        Returns:
            Records ordered by timestamp; empty when no pose was found

        Raises:
            InitError: The detector could not be initialized (or became
                unavailable mid-extraction)
            VideoDecodeError: The video became unusable
        """
        await self.adapter.initialize()

        total = sample_count(handle.duration, frame_rate)
        logger.info(f"Extracting poses: {total} samples at {frame_rate:g} Hz")
        if on_progress is not None:
            on_progress(0, total)

        records: List[FrameRecord] = []

        async for frame_data in self.sampler.sample(handle, frame_rate):
            landmarks = await self.adapter.detect(frame_data.frame)

            if on_progress is not None:
                on_progress(frame_data.frame_idx + 1, total)

            if landmarks is None:
                continue

            records.append(FrameRecord(
                timestamp_ms=frame_data.timestamp * 1000.0,
                landmarks=landmarks,
                frame_image=encode_thumbnail(frame_data.frame, self.thumbnails),
            ))

        logger.info(f"Detected poses in {len(records)}/{total} samples")
        return tuple(records)
