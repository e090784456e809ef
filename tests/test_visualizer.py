import numpy as np
import pytest

from configs.config import OverlayConfig, ThumbnailConfig
from posereplay.assembler import FrameRecord, encode_thumbnail
from posereplay.landmarks import POSE_LANDMARK_NAMES, Landmark
from posereplay.visualizer import (
    MarkerColor,
    OverlayProjector,
    SkeletonVisualizer,
    build_timeline_figure,
    encode_data_uri,
    landmark_color,
)

from conftest import make_landmarks, make_records


@pytest.mark.parametrize("name", POSE_LANDMARK_NAMES)
def test_every_landmark_has_exactly_one_color(name):
    color = landmark_color(name)

    assert color in (MarkerColor.RED, MarkerColor.BLUE, MarkerColor.GREEN, MarkerColor.YELLOW)
    if name.startswith("LEFT") or name.endswith("LEFT"):
        assert color is MarkerColor.RED
    elif name.startswith("RIGHT") or name.endswith("RIGHT"):
        assert color is MarkerColor.BLUE


def test_side_wins_over_face():
    assert landmark_color("NOSE") is MarkerColor.GREEN
    assert landmark_color("LEFT_EYE") is MarkerColor.RED
    assert landmark_color("RIGHT_EAR") is MarkerColor.BLUE
    assert landmark_color("SPINE") is MarkerColor.YELLOW


def test_marker_color_channels():
    assert MarkerColor.RED.hex == "#FF0000"
    assert MarkerColor.RED.bgr == (0, 0, 255)


def test_projection_scales_to_viewport():
    landmarks = [
        Landmark("NOSE", 0.5, 0.25, -0.3, 0.1),
        Landmark("LEFT_KNEE", 0.0, 1.0, 0.0, 1.0),
    ]

    markers = OverlayProjector().project(landmarks, 640, 360)

    assert [(m.name, m.pixel_x, m.pixel_y) for m in markers] == [
        ("NOSE", 320.0, 90.0),
        ("LEFT_KNEE", 0.0, 360.0),
    ]
    assert markers[1].color is MarkerColor.RED


def test_projection_of_full_set_keeps_order():
    landmarks = make_landmarks(x=0.1, y=0.9)

    markers = OverlayProjector().project(landmarks, 100, 200)

    assert [m.name for m in markers] == list(POSE_LANDMARK_NAMES)
    assert all(m.pixel_x == pytest.approx(10.0) and m.pixel_y == pytest.approx(180.0) for m in markers)


def test_draw_marks_frame_and_keeps_input():
    frame = np.zeros((100, 100, 3), dtype=np.uint8)
    markers = OverlayProjector().project(make_landmarks(x=0.5, y=0.5), 100, 100)

    annotated = SkeletonVisualizer(OverlayConfig(marker_outline_thickness=0)).draw(frame, markers)

    assert frame.sum() == 0
    assert annotated[50, 50].tolist() == list(MarkerColor.BLUE.bgr)


def test_render_uses_frame_image_at_viewport_size():
    config = OverlayConfig(viewport_width=160, viewport_height=90)
    frame = np.full((48, 64, 3), 30, dtype=np.uint8)
    image = encode_thumbnail(frame, ThumbnailConfig(width=64, height=48))
    record = FrameRecord(0.0, make_landmarks(), frame_image=image)

    rendered = SkeletonVisualizer(config).render(record)

    assert rendered.shape == (90, 160, 3)
    assert rendered[0, 0].tolist() != [0, 0, 0]


def test_render_without_image_uses_placeholder():
    rendered = SkeletonVisualizer().render(make_records(1)[0])

    assert rendered.shape == (360, 640, 3)
    assert rendered[0, 0].tolist() == [240, 240, 240]


def test_encode_data_uri():
    uri = encode_data_uri(np.zeros((10, 10, 3), dtype=np.uint8))
    assert uri.startswith("data:image/jpeg;base64,")


def test_timeline_points_carry_record_index():
    records = make_records(4)

    fig = build_timeline_figure(records, current_index=2)

    trace = fig.data[0]
    assert list(trace.customdata) == [0, 1, 2, 3]
    assert list(trace.x) == pytest.approx([0.0, 0.1, 0.2, 0.3])
    assert fig.layout.shapes[0].x0 == pytest.approx(0.2)


def test_timeline_empty():
    fig = build_timeline_figure(())
    assert len(fig.data) == 0
