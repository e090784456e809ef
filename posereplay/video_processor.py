"""
================================================================================
VIDEO PROCESSOR MODULE
================================================================================
Handles video opening, seeking, and frame sampling.

Frames are sampled at a fixed rate (default 10 samples/second) by seeking to
each sample timestamp and decoding the nearest frame, rather than reading
every frame of the source. A sample that cannot be decoded is skipped; a video
that cannot be decoded at all aborts sampling with VideoDecodeError.
================================================================================
"""

import asyncio
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, AsyncIterator, List, Optional, Tuple, Union

import numpy as np
import cv2

from posereplay.errors import SampleDecodeError, VideoDecodeError
from posereplay.logger import get_logger
from posereplay.runtime import run_to_completion

logger = get_logger(__name__)

DEFAULT_FRAME_RATE = 10.0

# Guards floor(duration * frame_rate) against values like 19.999999999.
_TICK_EPSILON = 1e-9


# ==============================================================================
# DATA STRUCTURES
# ==============================================================================

@dataclass
class VideoHandle:
    """An opened, seekable video and its metadata."""
    uri: str
    width: int
    height: int
    fps: float
    frame_count: int
    duration: float
    codec: str = ""
    capture: Any = field(default=None, repr=False, compare=False)

    def __str__(self) -> str:
        return (
            f"Video: {Path(self.uri).name}\n"
            f"  Resolution: {self.width}x{self.height}\n"
            f"  FPS: {self.fps:.2f}\n"
            f"  Duration: {self.duration:.2f}s ({self.frame_count} frames)\n"
            f"  Codec: {self.codec}"
        )


@dataclass
class FrameData:
    """Container for a single sampled frame."""
    frame: np.ndarray
    frame_idx: int
    timestamp: float                # seconds from video start
    original_size: Tuple[int, int]  # (width, height)


# ==============================================================================
# SAMPLE CLOCK
# ==============================================================================

def sample_count(duration: float, frame_rate: float = DEFAULT_FRAME_RATE) -> int:
    """Number of samples drawn from a video of the given duration."""
    if frame_rate <= 0:
        raise ValueError(f"frame_rate must be positive, got {frame_rate}")
    if duration <= 0:
        return 0
    return int(math.floor(duration * frame_rate + _TICK_EPSILON))


def sample_timestamps(duration: float, frame_rate: float = DEFAULT_FRAME_RATE) -> List[float]:
    """
    Sample timestamps in seconds: 0, 1/rate, 2/rate, ...

    Each timestamp is computed from its integer tick (idx / rate), so long
    videos do not accumulate floating-point drift.

    Example:
        >>> sample_timestamps(0.5, 10)
        [0.0, 0.1, 0.2, 0.3, 0.4]
    """
    return [idx / frame_rate for idx in range(sample_count(duration, frame_rate))]


# ==============================================================================
# VIDEO SOURCE CAPABILITY
# ==============================================================================

class VideoSource(ABC):
    """
    Opens videos and decodes the frame nearest a timestamp.

    Implementations are blocking; the sampler calls them off the event loop.
    """

    @abstractmethod
    def open(self, uri: Union[str, Path]) -> VideoHandle:
        """Open a video; raises VideoDecodeError if it is unusable."""

    @abstractmethod
    def decode_frame_near(self, handle: VideoHandle, timestamp: float) -> np.ndarray:
        """
        Decode the frame nearest `timestamp` seconds as a BGR image.

        Raises SampleDecodeError for a per-timestamp failure and
        VideoDecodeError when the handle itself has become unusable.
        """

    def close(self, handle: VideoHandle) -> None:
        return None


class OpenCVVideoSource(VideoSource):
    """
    Video source backed by cv2.VideoCapture.

    Example:
        >>> source = OpenCVVideoSource()
        >>> handle = source.open("jump.mp4")
        >>> frame = source.decode_frame_near(handle, 1.5)
        >>> source.close(handle)
    """

    def open(self, uri: Union[str, Path]) -> VideoHandle:
        video_path = Path(uri)

        if not video_path.exists():
            raise VideoDecodeError(f"Video not found: {video_path}")

        cap = cv2.VideoCapture(str(video_path))

        if not cap.isOpened():
            cap.release()
            raise VideoDecodeError(f"Cannot open video: {video_path}")

        width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        fps = cap.get(cv2.CAP_PROP_FPS)
        frame_count = int(cap.get(cv2.CAP_PROP_FRAME_COUNT))

        if fps <= 0 or frame_count <= 0 or width <= 0 or height <= 0:
            cap.release()
            raise VideoDecodeError(
                f"Unsupported or corrupt video: {video_path} "
                f"({width}x{height}, {fps:.2f} fps, {frame_count} frames)"
            )

        fourcc_int = int(cap.get(cv2.CAP_PROP_FOURCC))
        codec = "".join([chr((fourcc_int >> 8 * i) & 0xFF) for i in range(4)])

        return VideoHandle(
            uri=str(video_path),
            width=width,
            height=height,
            fps=fps,
            frame_count=frame_count,
            duration=frame_count / fps,
            codec=codec,
            capture=cap,
        )

    def decode_frame_near(self, handle: VideoHandle, timestamp: float) -> np.ndarray:
        cap = handle.capture
        if cap is None or not cap.isOpened():
            raise VideoDecodeError(f"Video handle is closed: {handle.uri}")

        # set() may return False on backends that did seek; read() decides.
        cap.set(cv2.CAP_PROP_POS_MSEC, timestamp * 1000.0)
        ret, frame = cap.read()
        if not ret or frame is None:
            raise SampleDecodeError(timestamp, "no frame decoded")
        return frame

    def close(self, handle: VideoHandle) -> None:
        if handle.capture is not None:
            handle.capture.release()
            handle.capture = None


# ==============================================================================
# FRAME SAMPLER
# ==============================================================================

class FrameSampler:
    """
    Produces sampled frames lazily, one decode per element.

    Example:
        >>> sampler = FrameSampler(OpenCVVideoSource())
        >>> async for frame_data in sampler.sample(handle, frame_rate=10):
        ...     landmarks = await adapter.detect(frame_data.frame)
    """

    def __init__(self, source: VideoSource, max_dimension: Optional[int] = None):
        self.source = source
        self.max_dimension = max_dimension

    async def sample(
        self,
        handle: VideoHandle,
        frame_rate: float = DEFAULT_FRAME_RATE,
    ) -> AsyncIterator[FrameData]:
        """
        Yield FrameData for each decodable sample timestamp, in order.

        The iterator is single-use: every element triggers a real seek and
        decode against the handle.
        """
        timestamps = sample_timestamps(handle.duration, frame_rate)
        skipped = 0

        for frame_idx, timestamp in enumerate(timestamps):
            try:
                # The handle must not be closed while a read is still running.
                frame = await run_to_completion(asyncio.to_thread(
                    self.source.decode_frame_near, handle, timestamp
                ))
            except SampleDecodeError as e:
                skipped += 1
                logger.debug(str(e))
                continue

            original_size = (frame.shape[1], frame.shape[0])
            frame = self._maybe_resize(frame)

            yield FrameData(
                frame=frame,
                frame_idx=frame_idx,
                timestamp=timestamp,
                original_size=original_size,
            )

        if timestamps and skipped == len(timestamps):
            raise VideoDecodeError(
                f"No frame could be decoded from {handle.uri} "
                f"({skipped} samples tried)"
            )
        if skipped:
            logger.info(f"Skipped {skipped}/{len(timestamps)} undecodable samples")

    def _maybe_resize(self, frame: np.ndarray) -> np.ndarray:
        if not self.max_dimension:
            return frame
        height, width = frame.shape[:2]
        resize = _calculate_resize(width, height, self.max_dimension)
        if resize == (width, height):
            return frame
        return cv2.resize(frame, resize, interpolation=cv2.INTER_AREA)


def _calculate_resize(width: int, height: int, max_dim: int) -> Tuple[int, int]:
    """Calculate resize dimensions maintaining aspect ratio."""
    if max(width, height) <= max_dim:
        return (width, height)

    scale = max_dim / max(width, height)
    new_width = int(width * scale) - (int(width * scale) % 2)
    new_height = int(height * scale) - (int(height * scale) % 2)

    return (new_width, new_height)
