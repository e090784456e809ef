"""
================================================================================
OVERLAY PROJECTOR AND VISUALIZER MODULE
================================================================================
Creates visualizations of extracted poses including:
    - Projection of normalized landmarks into viewport pixels
    - Side-based marker colors (left red, right blue, face green)
    - Skeleton overlay drawn onto frame stills
    - Timeline figure of detected frames for click-to-seek
================================================================================
"""

import base64
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

import numpy as np
import cv2
import plotly.graph_objects as go

from configs.config import OverlayConfig
from posereplay.assembler import FrameRecord
from posereplay.landmarks import (
    NUM_LANDMARKS,
    POSE_CONNECTIONS,
    BodySide,
    Landmark,
    body_side,
    is_face_landmark,
)


class MarkerColor(Enum):
    RED = ("#FF0000", (0, 0, 255))
    BLUE = ("#0000FF", (255, 0, 0))
    GREEN = ("#00FF00", (0, 255, 0))
    YELLOW = ("#FFFF00", (0, 255, 255))

    @property
    def hex(self) -> str:
        return self.value[0]

    @property
    def bgr(self) -> Tuple[int, int, int]:
        return self.value[1]


def landmark_color(name: str) -> MarkerColor:
    """
    Marker color for a landmark name.

    The side tag wins over the face check, so LEFT_EYE is red and only NOSE
    is green among the 33 pose landmarks.
    """
    side = body_side(name)
    if side is BodySide.LEFT:
        return MarkerColor.RED
    if side is BodySide.RIGHT:
        return MarkerColor.BLUE
    if is_face_landmark(name):
        return MarkerColor.GREEN
    return MarkerColor.YELLOW


@dataclass(frozen=True)
class OverlayMarker:
    name: str
    pixel_x: float
    pixel_y: float
    color: MarkerColor


# ==============================================================================
# OVERLAY PROJECTOR
# ==============================================================================

class OverlayProjector:
    """Maps normalized landmarks onto a viewport. Stateless."""

    def project(
        self,
        landmarks: Sequence[Landmark],
        viewport_width: float,
        viewport_height: float,
    ) -> List[OverlayMarker]:
        """One marker per landmark, in input order. z and visibility are ignored."""
        return [
            OverlayMarker(
                name=lm.name,
                pixel_x=lm.x * viewport_width,
                pixel_y=lm.y * viewport_height,
                color=landmark_color(lm.name),
            )
            for lm in landmarks
        ]


# ==============================================================================
# SKELETON VISUALIZER
# ==============================================================================

class SkeletonVisualizer:
    """
    Draws projected markers and skeleton lines onto frames.

    Example:
        >>> viz = SkeletonVisualizer()
        >>> annotated = viz.render(record)
        >>> cv2.imwrite("frame.jpg", annotated)
    """

    def __init__(self, config: Optional[OverlayConfig] = None):
        self.config = config or OverlayConfig()
        self.projector = OverlayProjector()

    def render(self, record: FrameRecord) -> np.ndarray:
        """Frame still (or a blank placeholder) at viewport size, with overlay."""
        width, height = self.config.viewport_width, self.config.viewport_height

        if record.frame_image is not None:
            frame = record.frame_image.to_array()
            if frame.shape[1] != width or frame.shape[0] != height:
                frame = cv2.resize(frame, (width, height), interpolation=cv2.INTER_LINEAR)
        else:
            frame = np.full((height, width, 3), 240, dtype=np.uint8)

        markers = self.projector.project(record.landmarks, width, height)
        return self.draw(frame, markers, copy=False)

    def draw(
        self,
        frame: np.ndarray,
        markers: Sequence[OverlayMarker],
        copy: bool = True,
    ) -> np.ndarray:
        """
        Draw markers (and skeleton lines) on a BGR frame.

        Args:
            frame: BGR image (H, W, 3) matching the projection viewport
            markers: Output of OverlayProjector.project, in landmark order
            copy: Work on a copy of the frame

        Returns:
            Annotated frame
        """
        if copy:
            frame = frame.copy()

        if self.config.draw_skeleton and len(markers) == NUM_LANDMARKS:
            frame = self._draw_skeleton_lines(frame, markers)

        return self._draw_marker_circles(frame, markers)

    def _draw_skeleton_lines(self, frame: np.ndarray, markers: Sequence[OverlayMarker]) -> np.ndarray:
        for start_idx, end_idx in POSE_CONNECTIONS:
            start = markers[start_idx]
            end = markers[end_idx]
            cv2.line(
                frame,
                (int(start.pixel_x), int(start.pixel_y)),
                (int(end.pixel_x), int(end.pixel_y)),
                self.config.skeleton_color,
                self.config.skeleton_thickness,
                cv2.LINE_AA,
            )
        return frame

    def _draw_marker_circles(self, frame: np.ndarray, markers: Sequence[OverlayMarker]) -> np.ndarray:
        radius = self.config.marker_radius

        for marker in markers:
            center = (int(marker.pixel_x), int(marker.pixel_y))
            cv2.circle(frame, center, radius, marker.color.bgr, -1, cv2.LINE_AA)
            if self.config.marker_outline_thickness > 0:
                cv2.circle(
                    frame, center, radius,
                    self.config.marker_outline_color,
                    self.config.marker_outline_thickness,
                    cv2.LINE_AA,
                )

        return frame


def encode_data_uri(frame: np.ndarray, quality: int = 85) -> str:
    """JPEG-encode a BGR frame as a data URI for html.Img."""
    ok, buffer = cv2.imencode(".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, quality])
    if not ok:
        return ""
    return "data:image/jpeg;base64," + base64.b64encode(buffer).decode()


# ==============================================================================
# TIMELINE FIGURE
# ==============================================================================

def build_timeline_figure(
    records: Sequence[FrameRecord],
    current_index: Optional[int] = None,
) -> go.Figure:
    """
    Scatter of detected frames (time vs mean visibility).

    Each point's customdata is its record index, so a click can be turned
    straight into a seek.
    """
    fig = go.Figure()

    if not records:
        return fig.update_layout(
            template='plotly_dark',
            annotations=[dict(text="Process a video to see detected frames", showarrow=False, font=dict(size=16))]
        )

    times = [r.timestamp for r in records]
    visibility = [r.landmarks.mean_visibility for r in records]

    fig.add_trace(go.Scatter(
        x=times,
        y=visibility,
        customdata=list(range(len(records))),
        mode='markers+lines',
        name='Detected frames',
        line=dict(color='#00ccff', width=1),
        marker=dict(size=6),
        hovertemplate="Frame %{customdata}<br>Time: %{x:.2f}s<br>Visibility: %{y:.0%}<extra></extra>",
    ))

    if current_index is not None and 0 <= current_index < len(records):
        fig.add_vline(
            x=times[current_index],
            line=dict(color='#FFFF00', width=3, dash='solid'),
        )

    fig.update_layout(
        template='plotly_dark',
        showlegend=False,
        margin=dict(l=50, r=20, t=20, b=40),
        xaxis_title='Time (s)',
        yaxis_title='Mean visibility',
        yaxis=dict(range=[0, 1.05]),
        hovermode='closest',
    )
    return fig
