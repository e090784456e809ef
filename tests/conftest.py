"""Shared fakes: in-memory video source, scripted detectors, record builders."""

import asyncio
import threading
import time
from typing import Callable, List, Optional, Sequence

import cv2
import numpy as np
import pytest

from posereplay.assembler import FrameRecord
from posereplay.detectors.base import PoseDetector
from posereplay.errors import InitError, SampleDecodeError, VideoDecodeError
from posereplay.landmarks import NUM_LANDMARKS, LandmarkSet
from posereplay.video_processor import VideoHandle, VideoSource


def make_landmarks(x: float = 0.5, y: float = 0.5, visibility: float = 0.9) -> LandmarkSet:
    return LandmarkSet.from_rows([(x, y, 0.0, visibility)] * NUM_LANDMARKS)


def make_records(count: int, step_ms: float = 100.0) -> tuple:
    return tuple(
        FrameRecord(timestamp_ms=idx * step_ms, landmarks=make_landmarks())
        for idx in range(count)
    )


class FakeVideoSource(VideoSource):
    """Solid-color frames of any duration; selected timestamps fail to decode."""

    def __init__(
        self,
        duration: float = 2.0,
        width: int = 64,
        height: int = 48,
        fps: float = 30.0,
        bad_timestamps: Sequence[float] = (),
        fail_open: bool = False,
    ):
        self.duration = duration
        self.width = width
        self.height = height
        self.fps = fps
        self.bad_timestamps = list(bad_timestamps)
        self.fail_open = fail_open
        self.decoded: List[float] = []
        self.opened = 0
        self.closed = 0

    def open(self, uri) -> VideoHandle:
        if self.fail_open:
            raise VideoDecodeError(f"Cannot open video: {uri}")
        self.opened += 1
        return VideoHandle(
            uri=str(uri),
            width=self.width,
            height=self.height,
            fps=self.fps,
            frame_count=int(round(self.duration * self.fps)),
            duration=self.duration,
            codec="fake",
        )

    def decode_frame_near(self, handle: VideoHandle, timestamp: float) -> np.ndarray:
        if any(abs(timestamp - bad) < 1e-6 for bad in self.bad_timestamps):
            raise SampleDecodeError(timestamp, "corrupt packet")
        self.decoded.append(timestamp)
        return np.full((self.height, self.width, 3), 128, dtype=np.uint8)

    def close(self, handle: VideoHandle) -> None:
        self.closed += 1


class ScriptedDetector(PoseDetector):
    """
    Detector whose answer for the n-th call is decided by `script(n)`.

    The script returns True for a pose, False for none, or an exception
    instance to raise.
    """

    name = "scripted"

    def __init__(
        self,
        script: Callable[[int], object] = lambda n: True,
        init_error: Optional[Exception] = None,
    ):
        self.script = script
        self.init_error = init_error
        self.init_calls = 0
        self.calls = 0
        self.closed = False

    async def initialize(self) -> None:
        self.init_calls += 1
        if self.init_error is not None:
            raise self.init_error

    async def detect(self, image: np.ndarray) -> Optional[LandmarkSet]:
        n = self.calls
        self.calls += 1
        answer = self.script(n)
        if isinstance(answer, Exception):
            raise answer
        return make_landmarks(x=(n % 10) / 10.0) if answer else None

    async def close(self) -> None:
        self.closed = True


class ThreadedDetector(ScriptedDetector):
    """Detects on a worker thread, like the MediaPipe backend, and counts overlap."""

    name = "threaded"

    def __init__(self, delay: float = 0.1):
        super().__init__()
        self.delay = delay
        self.active = 0
        self.max_active = 0
        self._guard = threading.Lock()

    def _detect_blocking(self) -> LandmarkSet:
        with self._guard:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        time.sleep(self.delay)
        with self._guard:
            self.active -= 1
        return make_landmarks()

    async def detect(self, image: np.ndarray) -> Optional[LandmarkSet]:
        self.calls += 1
        return await asyncio.to_thread(self._detect_blocking)


class ManualTimer:
    """Timer double: ticks only when the test calls fire()."""

    instances: List["ManualTimer"] = []

    def __init__(self, interval: float, callback: Callable[[], None]):
        self.interval = interval
        self.callback = callback
        self.started = False
        self.cancelled = False
        ManualTimer.instances.append(self)

    @property
    def active(self) -> bool:
        return self.started and not self.cancelled

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        # Fires even after cancel(), like a tick that was already scheduled.
        self.callback()


@pytest.fixture
def manual_timers():
    ManualTimer.instances = []
    yield ManualTimer.instances
    ManualTimer.instances = []


@pytest.fixture
def failing_init_detector():
    return ScriptedDetector(init_error=InitError("model file missing"))


@pytest.fixture
def mjpg_video(tmp_path):
    path = tmp_path / "clip.avi"
    writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*"MJPG"), 10.0, (64, 48))
    if not writer.isOpened():
        pytest.skip("MJPG writer not available in this OpenCV build")
    for idx in range(20):
        frame = np.full((48, 64, 3), idx * 10, dtype=np.uint8)
        writer.write(frame)
    writer.release()
    return path


@pytest.fixture
def corrupt_mjpg_video(mjpg_video):
    """The same clip with every JPEG payload zeroed; the AVI headers stay intact."""
    data = bytearray(mjpg_video.read_bytes())
    pos = data.find(b"movi")
    end = data.find(b"idx1", pos)
    if pos < 0:
        pytest.skip("Unexpected AVI layout")
    if end < 0:
        end = len(data)

    while True:
        pos = data.find(b"00dc", pos, end)
        if pos < 0:
            break
        size = int.from_bytes(data[pos + 4:pos + 8], "little")
        data[pos + 8:pos + 8 + size] = bytes(size)
        pos += 8 + size

    mjpg_video.write_bytes(bytes(data))
    return mjpg_video
