import asyncio
import math
import time

import cv2
import numpy as np
import pytest

from posereplay.errors import SampleDecodeError, VideoDecodeError
from posereplay.video_processor import (
    FrameSampler,
    OpenCVVideoSource,
    _calculate_resize,
    sample_count,
    sample_timestamps,
)

from conftest import FakeVideoSource


async def collect(sampler, handle, frame_rate):
    return [frame async for frame in sampler.sample(handle, frame_rate)]


# ==============================================================================
# Sample clock
# ==============================================================================

def test_two_second_video_at_10hz_gives_20_timestamps():
    timestamps = sample_timestamps(2.0, 10)

    assert len(timestamps) == 20
    assert timestamps[0] == 0.0
    assert timestamps[-1] == pytest.approx(1.9)
    assert timestamps == pytest.approx([i / 10 for i in range(20)])


@pytest.mark.parametrize("duration", [0.05, 0.1, 0.3, 1.0, 2.0, 3.3, 59.97, 600.0])
@pytest.mark.parametrize("frame_rate", [1, 5, 10, 15, 29.97, 30])
def test_sample_count_never_exceeds_duration_times_rate(duration, frame_rate):
    timestamps = sample_timestamps(duration, frame_rate)

    assert len(timestamps) <= math.floor(duration * frame_rate + 1e-9)
    assert all(t < duration for t in timestamps)
    assert all(a < b for a, b in zip(timestamps, timestamps[1:]))


def test_long_videos_do_not_drift():
    timestamps = sample_timestamps(3600.0, 10)

    assert len(timestamps) == 36000
    assert timestamps[-1] == 3599.9
    assert timestamps[12345] == 1234.5


def test_empty_and_invalid_inputs():
    assert sample_timestamps(0.0, 10) == []
    assert sample_count(-1.0, 10) == 0
    with pytest.raises(ValueError):
        sample_count(1.0, 0)


# ==============================================================================
# Frame sampler
# ==============================================================================

def test_sampler_decodes_each_timestamp_in_order():
    source = FakeVideoSource(duration=1.0)
    sampler = FrameSampler(source)
    handle = source.open("clip.mp4")

    frames = asyncio.run(collect(sampler, handle, 10))

    assert [f.frame_idx for f in frames] == list(range(10))
    assert [f.timestamp for f in frames] == pytest.approx(source.decoded)
    assert frames[0].original_size == (64, 48)


def test_sampler_skips_undecodable_timestamps():
    source = FakeVideoSource(duration=1.0, bad_timestamps=[0.3, 0.7])
    sampler = FrameSampler(source)
    handle = source.open("clip.mp4")

    frames = asyncio.run(collect(sampler, handle, 10))

    assert len(frames) == 8
    assert 3 not in [f.frame_idx for f in frames]
    assert [f.timestamp for f in frames] == sorted(f.timestamp for f in frames)


def test_sampler_fails_when_no_sample_decodes():
    source = FakeVideoSource(duration=1.0, bad_timestamps=sample_timestamps(1.0, 10))
    handle = source.open("clip.mp4")

    with pytest.raises(VideoDecodeError, match="No frame could be decoded"):
        asyncio.run(collect(FrameSampler(source), handle, 10))


def test_cancelled_sampler_waits_for_the_read_in_flight():
    class SlowSource(FakeVideoSource):
        reading = False
        read_during_close = False

        def decode_frame_near(self, handle, timestamp):
            self.reading = True
            time.sleep(0.1)
            self.reading = False
            return super().decode_frame_near(handle, timestamp)

        def close(self, handle):
            self.read_during_close = self.reading
            super().close(handle)

    source = SlowSource(duration=1.0)
    handle = source.open("clip.mp4")

    async def consume():
        try:
            await collect(FrameSampler(source), handle, 10)
        finally:
            source.close(handle)

    async def run():
        task = asyncio.ensure_future(consume())
        await asyncio.sleep(0.03)
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        return task

    task = asyncio.run(run())

    assert task.cancelled()
    assert source.closed == 1
    assert source.read_during_close is False
    assert source.decoded == [0.0]


def test_sampler_propagates_video_decode_errors():
    class BrokenSource(FakeVideoSource):
        def decode_frame_near(self, handle, timestamp):
            raise VideoDecodeError("handle closed")

    source = BrokenSource(duration=1.0)
    handle = source.open("clip.mp4")

    with pytest.raises(VideoDecodeError):
        asyncio.run(collect(FrameSampler(source), handle, 10))


def test_sampler_downscales_large_frames():
    source = FakeVideoSource(duration=0.2, width=1920, height=1080)
    sampler = FrameSampler(source, max_dimension=640)
    handle = source.open("clip.mp4")

    frames = asyncio.run(collect(sampler, handle, 10))

    assert frames[0].frame.shape[:2] == (360, 640)
    assert frames[0].original_size == (1920, 1080)


def test_calculate_resize_keeps_aspect_and_even_sizes():
    assert _calculate_resize(640, 480, 1280) == (640, 480)
    assert _calculate_resize(1920, 1080, 960) == (960, 540)
    width, height = _calculate_resize(1001, 777, 500)
    assert width % 2 == 0 and height % 2 == 0
    assert max(width, height) <= 500


# ==============================================================================
# OpenCV source
# ==============================================================================

def test_opencv_source_reads_metadata_and_frames(mjpg_video):
    source = OpenCVVideoSource()
    handle = source.open(mjpg_video)

    try:
        assert (handle.width, handle.height) == (64, 48)
        assert handle.fps == pytest.approx(10.0)
        assert handle.frame_count == 20
        assert handle.duration == pytest.approx(2.0)

        frame = source.decode_frame_near(handle, 0.5)
        assert frame.shape == (48, 64, 3)
    finally:
        source.close(handle)

    assert handle.capture is None
    with pytest.raises(VideoDecodeError):
        source.decode_frame_near(handle, 0.5)


def test_opencv_source_samples_whole_video(mjpg_video):
    source = OpenCVVideoSource()
    handle = source.open(mjpg_video)
    try:
        frames = asyncio.run(collect(FrameSampler(source), handle, 10))
    finally:
        source.close(handle)

    assert 0 < len(frames) <= 20


def test_opencv_source_rejects_missing_file(tmp_path):
    with pytest.raises(VideoDecodeError):
        OpenCVVideoSource().open(tmp_path / "missing.mp4")


def test_opencv_source_rejects_garbage(tmp_path):
    path = tmp_path / "garbage.mp4"
    path.write_bytes(b"not a video at all" * 100)

    with pytest.raises(VideoDecodeError):
        OpenCVVideoSource().open(path)


def test_sample_decode_error_message():
    err = SampleDecodeError(1.25, "no frame decoded")
    assert err.timestamp == 1.25
    assert "1.250s" in str(err)


def test_opencv_source_with_undecodable_frames_fails(corrupt_mjpg_video):
    source = OpenCVVideoSource()

    with pytest.raises(VideoDecodeError):
        handle = source.open(corrupt_mjpg_video)
        try:
            asyncio.run(collect(FrameSampler(source), handle, 10))
        finally:
            source.close(handle)
