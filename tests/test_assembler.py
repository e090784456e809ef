import asyncio

import numpy as np
import pytest

from configs.config import ThumbnailConfig
from posereplay.assembler import FrameImage, FrameRecord, FrameRecordAssembler, encode_thumbnail
from posereplay.errors import InitError
from posereplay.landmarks import NUM_LANDMARKS
from posereplay.pose_estimator import PoseInferenceAdapter
from posereplay.video_processor import FrameSampler

from conftest import FakeVideoSource, ScriptedDetector, make_landmarks


def build(detector, source, thumbnails=None):
    adapter = PoseInferenceAdapter(detector)
    return FrameRecordAssembler(adapter, FrameSampler(source), thumbnails or ThumbnailConfig(enabled=False))


def assemble(assembler, source, frame_rate=10, on_progress=None):
    handle = source.open("clip.mp4")
    return asyncio.run(assembler.assemble(handle, frame_rate, on_progress))


def test_poses_on_even_samples_only():
    source = FakeVideoSource(duration=2.0)
    assembler = build(ScriptedDetector(lambda n: n % 2 == 0), source)

    records = assemble(assembler, source)

    assert len(records) == 10
    assert [r.timestamp_ms for r in records] == pytest.approx([i * 200.0 for i in range(10)])


def test_records_are_ordered_complete_and_bounded():
    source = FakeVideoSource(duration=3.3, bad_timestamps=[7 / 15, 1.0])
    assembler = build(ScriptedDetector(lambda n: n % 3 != 1), source)

    records = assemble(assembler, source, frame_rate=15)

    timestamps = [r.timestamp_ms for r in records]
    assert timestamps == sorted(timestamps)
    assert len(set(timestamps)) == len(timestamps)
    assert len(records) <= int(3.3 * 15)
    assert all(len(r.landmarks) == NUM_LANDMARKS for r in records)


def test_no_poses_gives_empty_sequence():
    source = FakeVideoSource(duration=1.0)
    records = assemble(build(ScriptedDetector(lambda n: False), source), source)

    assert records == ()


def test_init_failure_propagates_before_sampling(failing_init_detector):
    source = FakeVideoSource(duration=1.0)
    assembler = build(failing_init_detector, source)

    with pytest.raises(InitError):
        assemble(assembler, source)
    assert source.decoded == []
    assert failing_init_detector.calls == 0


def test_progress_reports_every_sample():
    source = FakeVideoSource(duration=1.0, bad_timestamps=[0.2])
    progress = []

    assemble(
        build(ScriptedDetector(), source),
        source,
        on_progress=lambda done, total: progress.append((done, total)),
    )

    assert [total for _, total in progress] == [10] * 10
    assert [done for done, _ in progress] == [0, 1, 2, 4, 5, 6, 7, 8, 9, 10]


def test_cancellation_stops_extraction():
    class SlowDetector(ScriptedDetector):
        async def detect(self, image):
            await asyncio.sleep(0.01)
            return await super().detect(image)

    source = FakeVideoSource(duration=10.0)
    detector = SlowDetector()
    assembler = build(detector, source)
    handle = source.open("clip.mp4")

    async def run():
        task = asyncio.ensure_future(assembler.assemble(handle, 10))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(run())
    assert 0 < detector.calls < 100


def test_thumbnails_are_attached_when_enabled():
    source = FakeVideoSource(duration=0.3)
    config = ThumbnailConfig(enabled=True, width=32, height=18, jpeg_quality=80)

    records = assemble(build(ScriptedDetector(), source, config), source)

    image = records[0].frame_image
    assert isinstance(image, FrameImage)
    assert image.to_array().shape == (18, 32, 3)
    assert image.to_data_uri().startswith("data:image/jpeg;base64,")


def test_encode_thumbnail_disabled():
    frame = np.zeros((48, 64, 3), dtype=np.uint8)
    assert encode_thumbnail(frame, ThumbnailConfig(enabled=False)) is None


def test_frame_record_serialization():
    record = FrameRecord(timestamp_ms=1200.0, landmarks=make_landmarks(x=0.25))

    data = record.to_dict()

    assert record.timestamp == 1.2
    assert data["timestamp_ms"] == 1200.0
    assert len(data["landmarks"]) == NUM_LANDMARKS
    assert data["landmarks"][0] == {"name": "NOSE", "x": 0.25, "y": 0.5, "z": 0.0, "visibility": 0.9}
