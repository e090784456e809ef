"""
================================================================================
POSE REPLAY DASHBOARD
================================================================================
Features:
  - Upload a video and extract pose landmarks at a chosen sampling rate
  - Pick the detector backend (on-device MediaPipe, remote service, simulated)
  - Play / pause the extracted poses with a skeleton overlay
  - Thumbnail strip and timeline: click any frame to jump to it
  - Export landmarks as JSON

The session (extraction, playback timer, detector) runs on a background
asyncio loop; callbacks marshal every call onto it.

Run with: python app.py
Access at: http://localhost:8050
================================================================================
"""

import base64
import copy
import json
import tempfile
from pathlib import Path
from datetime import datetime
from typing import Optional

import dash
from dash import dcc, html, Input, Output, State, callback, ctx, ALL
import dash_bootstrap_components as dbc

from configs.config import PoseReplayConfig
from posereplay.errors import VideoDecodeError
from posereplay.logger import get_logger, setup_logging
from posereplay.runtime import BackgroundLoop
from posereplay.session import OutcomeKind, PoseReplaySession, SessionSnapshot
from posereplay.video_processor import OpenCVVideoSource
from posereplay.visualizer import SkeletonVisualizer, build_timeline_figure, encode_data_uri

logger = get_logger("app")

RENDER_INTERVAL_MS = 100

BACKEND_OPTIONS = [
    {'label': 'MediaPipe (on-device)', 'value': 'mediapipe'},
    {'label': 'Remote service', 'value': 'remote'},
    {'label': 'Simulated (no model)', 'value': 'simulated'},
]

OUTCOME_COLORS = {
    OutcomeKind.SUCCESS: "success",
    OutcomeKind.NO_POSES: "warning",
    OutcomeKind.FAILED: "danger",
}

THUMB_CLASS = "scrub-thumb me-2 mb-2"
THUMB_SELECTED_CLASS = THUMB_CLASS + " border border-3 border-warning"


# ==============================================================================
# GLOBAL STATE
# ==============================================================================

class AppState:
    def __init__(self):
        self.config = PoseReplayConfig()
        self.loop = BackgroundLoop().start()
        self.session: Optional[PoseReplaySession] = None
        self.session_key = None
        self.current_video_path: Optional[Path] = None
        self.visualizer = SkeletonVisualizer(self.config.overlay)

        # Bumped whenever the session's record sequence is replaced
        self.records_version = 0
        self.strip_version = 0
        self._last_records = None
        self._last_view = None

    async def _ensure_session(self, backend: str, remote_url: Optional[str]) -> PoseReplaySession:
        key = (backend, remote_url)
        if self.session is not None and self.session_key == key:
            return self.session

        if self.session is not None:
            await self.session.close()

        config = copy.deepcopy(self.config)
        config.detector.backend = backend
        config.detector.remote_url = remote_url
        self.session = PoseReplaySession(config)
        self.session_key = key
        logger.info(f"Created session with '{backend}' detector")
        return self.session

    async def _start(self, video_path: Path, backend: str, remote_url: Optional[str], frame_rate: float) -> None:
        session = await self._ensure_session(backend, remote_url)
        session.start_processing(video_path, frame_rate)

    def start_processing(self, video_path: Path, backend: str, remote_url: Optional[str], frame_rate: float) -> None:
        self.loop.run(self._start(video_path, backend, remote_url, frame_rate))

    def snapshot(self) -> Optional[SessionSnapshot]:
        if self.session is None:
            return None
        return self.loop.call(self.session.snapshot)

    def toggle_playback(self) -> None:
        if self.session is not None:
            self.loop.call(self.session.toggle_playback)

    def seek(self, index: int) -> None:
        if self.session is None:
            return
        try:
            self.loop.call(self.session.seek, index)
        except IndexError as e:
            logger.warning(f"Ignoring seek: {e}")

    def view_of(self, snap: SessionSnapshot) -> Optional[dict]:
        """The render key for a snapshot, or None if nothing changed since last time."""
        if snap.records is not self._last_records:
            self._last_records = snap.records
            self.records_version += 1

        view = {
            'version': self.records_version,
            'count': len(snap.records),
            'index': snap.current_index,
            'playing': snap.is_playing,
        }
        if view == self._last_view:
            return None
        self._last_view = view
        return view


state = AppState()
setup_logging(state.config.logging.level)

app = dash.Dash(
    __name__,
    external_stylesheets=[dbc.themes.DARKLY],
    title="Pose Replay",
    suppress_callback_exceptions=True
)


# ==============================================================================
# LAYOUT
# ==============================================================================

def create_settings_card():
    """Detector backend and sampling-rate controls."""
    return dbc.Card([
        dbc.CardHeader(html.H5("⚙️ Settings")),
        dbc.CardBody([
            dbc.Label("Detector"),
            dcc.Dropdown(
                id='backend-select',
                options=BACKEND_OPTIONS,
                value=state.config.detector.backend,
                clearable=False, className="mb-3"
            ),

            html.Div(id='remote-url-group', children=[
                dbc.Label("Service URL"),
                dbc.Input(id='remote-url', type='url', placeholder="http://localhost:8000", className="mb-3"),
            ]),

            dbc.Label("Sampling Rate (frames/s)"),
            dcc.Slider(
                id='frame-rate-slider',
                min=1, max=30, step=1, value=state.config.sampling.frame_rate,
                marks={1: '1', 5: '5', 10: '10', 15: '15', 30: '30'},
                tooltip={"placement": "bottom", "always_visible": True}
            ),
            html.Small("Higher = more frames, slower extraction", className="text-muted d-block"),
        ])
    ], className="mb-3")


def create_thumbnail(entry, selected: bool):
    return html.Button(
        [
            html.Img(src=entry.thumbnail_uri, style={'width': '120px', 'display': 'block'}),
            html.Small(entry.label),
        ],
        id={'type': 'thumb', 'index': entry.index},
        className=THUMB_SELECTED_CLASS if selected else THUMB_CLASS,
        style={'background': 'none', 'padding': '2px', 'color': 'inherit'},
        n_clicks=0,
    )


app.layout = dbc.Container([
    # Header
    dbc.Navbar(
        dbc.Container([
            dbc.NavbarBrand("🧍 Pose Replay", className="ms-2"),
        ], fluid=True),
        color="primary", dark=True, className="mb-4"
    ),

    dbc.Row([
        # Left Column - Controls
        dbc.Col([
            # Upload
            dbc.Card([
                dbc.CardHeader(html.H5("📁 Video")),
                dbc.CardBody([
                    dcc.Upload(
                        id='upload-video',
                        children=html.Div(['Drag & Drop or ', html.A('Select', className="text-primary")]),
                        style={'width': '100%', 'height': '80px', 'lineHeight': '80px',
                               'borderWidth': '2px', 'borderStyle': 'dashed', 'borderRadius': '10px',
                               'textAlign': 'center', 'cursor': 'pointer'},
                        accept='video/*'
                    ),
                    html.Div(id='video-info', className="mt-2"),
                ])
            ], className="mb-3"),

            create_settings_card(),

            # Process Buttons
            dbc.Button("▶️ Process Video", id='process-btn', color="success", size="lg", className="w-100 mb-2", disabled=True),
            dbc.Button("💾 Export JSON", id='export-btn', color="secondary", className="w-100", disabled=True),

            dbc.Progress(id='progress-bar', value=0, className="mt-3"),
            html.Div(id='status-text', className="text-center mt-2"),

        ], md=3),

        # Right Column - Replay
        dbc.Col([
            dbc.Card([
                dbc.CardHeader(html.H6("🎬 Replay", className="mb-0")),
                dbc.CardBody([
                    html.Div(id='frame-container', className="text-center", children=[
                        html.Img(id='frame-display', style={'maxHeight': '400px', 'maxWidth': '100%'}),
                    ]),
                    html.Div(id='playback-controls', style={'display': 'none'}, children=[
                        dbc.Row([
                            dbc.Col([
                                dbc.Button("▶️ Play", id='play-btn', color="info", className="w-100"),
                            ], md=2),
                            dbc.Col([
                                dbc.Progress(id='playback-progress', value=0, className="mt-2"),
                            ], md=10),
                        ], className="mt-3"),
                        html.Div(id='frame-info', className="text-center small mt-1"),
                    ]),
                ])
            ], className="mb-3"),

            # Scrub index
            dbc.Card([
                dbc.CardHeader([
                    html.H6("🖼️ Frames", className="mb-0 d-inline"),
                    html.Small(" (click a frame to jump to it)", className="text-muted"),
                ]),
                dbc.CardBody([
                    html.Div(id='thumb-strip', className="d-flex flex-wrap",
                             style={'maxHeight': '260px', 'overflowY': 'auto'}),
                ])
            ], className="mb-3"),

            # Timeline
            dbc.Card([
                dbc.CardHeader([
                    html.H6("📈 Timeline", className="mb-0 d-inline"),
                    html.Small(" (yellow line = current frame, click a point to jump)", className="text-muted"),
                ]),
                dbc.CardBody([
                    dcc.Graph(
                        id='timeline-graph',
                        style={'height': '260px'},
                        config={'displayModeBar': False},
                    ),
                ])
            ]),

        ], md=9),
    ]),

    # Hidden stores
    dcc.Store(id='video-store'),
    dcc.Store(id='view-store'),
    dcc.Store(id='control-store'),
    dcc.Interval(id='render-interval', interval=RENDER_INTERVAL_MS),
    dcc.Download(id='download-json'),

], fluid=True)


# ==============================================================================
# CALLBACKS
# ==============================================================================

@callback(
    [Output('video-info', 'children'),
     Output('video-store', 'data'),
     Output('process-btn', 'disabled')],
    Input('upload-video', 'contents'),
    State('upload-video', 'filename'),
    prevent_initial_call=True
)
def handle_upload(contents, filename):
    if contents is None:
        return "", None, True

    if Path(filename).suffix.lower() not in state.config.sampling.supported_formats:
        formats = ", ".join(state.config.sampling.supported_formats)
        return html.Div(f"Unsupported file type. Use one of: {formats}", className="text-danger"), None, True

    try:
        content_type, content_string = contents.split(',')
        decoded = base64.b64decode(content_string)

        temp_dir = Path(tempfile.gettempdir()) / "pose_replay"
        temp_dir.mkdir(exist_ok=True)
        video_path = temp_dir / Path(filename).name

        with open(video_path, 'wb') as f:
            f.write(decoded)

        source = OpenCVVideoSource()
        handle = source.open(video_path)
        source.close(handle)

    except (ValueError, OSError, VideoDecodeError) as e:
        logger.error(f"Upload rejected: {e}")
        return html.Div(f"Error: {e}", className="text-danger"), None, True

    state.current_video_path = video_path

    info = html.Div([
        html.Strong(filename), html.Br(),
        f"{handle.width}x{handle.height} | {handle.fps:.0f}fps | {handle.duration:.1f}s"
    ], className="small text-success")

    return info, str(video_path), False


@callback(
    Output('remote-url-group', 'style'),
    Input('backend-select', 'value'),
)
def toggle_remote_url(backend):
    return {} if backend == 'remote' else {'display': 'none'}


@callback(
    Output('control-store', 'data'),
    Input('process-btn', 'n_clicks'),
    [State('video-store', 'data'),
     State('backend-select', 'value'),
     State('remote-url', 'value'),
     State('frame-rate-slider', 'value')],
    prevent_initial_call=True
)
def process_video(n_clicks, video_path, backend, remote_url, frame_rate):
    if not video_path:
        return dash.no_update

    state.start_processing(Path(video_path), backend, remote_url or None, float(frame_rate))
    return {'processing': video_path, 'n': n_clicks}


@callback(
    [Output('view-store', 'data'),
     Output('progress-bar', 'value'),
     Output('progress-bar', 'label'),
     Output('status-text', 'children'),
     Output('export-btn', 'disabled'),
     Output('playback-controls', 'style')],
    Input('render-interval', 'n_intervals'),
)
def poll_session(n_intervals):
    """Read one snapshot of the session and publish what changed."""
    snap = state.snapshot()
    if snap is None:
        return dash.no_update, 0, "", "", True, {'display': 'none'}

    view = state.view_of(snap)

    if snap.processing:
        progress = snap.progress.fraction * 100
        status = f"Processing... {snap.progress.done}/{snap.progress.total}"
        label = f"{progress:.0f}%"
    else:
        progress = 100 if snap.outcome is not None else 0
        label = ""
        status = ""
        if snap.outcome is not None and snap.outcome.kind in OUTCOME_COLORS:
            status = dbc.Alert(snap.outcome.message, color=OUTCOME_COLORS[snap.outcome.kind], className="py-2")

    controls_style = {} if snap.has_records else {'display': 'none'}

    return (
        view if view is not None else dash.no_update,
        progress,
        label,
        status,
        not snap.has_records,
        controls_style,
    )


@callback(
    [Output('frame-display', 'src'),
     Output('frame-info', 'children'),
     Output('playback-progress', 'value'),
     Output('play-btn', 'children'),
     Output('timeline-graph', 'figure')],
    Input('view-store', 'data'),
    prevent_initial_call=True
)
def update_frame(view):
    """Render the current record with its overlay."""
    snap = state.snapshot()
    if snap is None or snap.current_record is None:
        return "", "", 0, "▶️ Play", build_timeline_figure(())

    record = snap.current_record
    total = len(snap.records)
    idx = snap.current_index

    frame = state.visualizer.render(record)
    info = f"Frame {idx + 1}/{total} | Time: {record.timestamp:.2f}s"
    button = "⏸️ Pause" if snap.is_playing else "▶️ Play"

    return (
        encode_data_uri(frame),
        info,
        (idx + 1) / total * 100,
        button,
        build_timeline_figure(snap.records, idx),
    )


@callback(
    Output('thumb-strip', 'children'),
    Input('view-store', 'data'),
    prevent_initial_call=True
)
def update_thumbnails(view):
    """Rebuild the strip only when a new record sequence was loaded."""
    if view is None or view['version'] == state.strip_version:
        return dash.no_update
    if state.session is None:
        return []

    entries = state.loop.call(lambda: state.session.scrub.entries)
    selected = view['index']
    state.strip_version = view['version']
    return [create_thumbnail(entry, entry.index == selected) for entry in entries]


@callback(
    Output({'type': 'thumb', 'index': ALL}, 'className'),
    [Input('view-store', 'data'),
     Input('thumb-strip', 'children')],
    State({'type': 'thumb', 'index': ALL}, 'id'),
    prevent_initial_call=True
)
def highlight_thumbnail(view, children, thumb_ids):
    selected = view['index'] if view else None
    return [
        THUMB_SELECTED_CLASS if thumb_id['index'] == selected else THUMB_CLASS
        for thumb_id in thumb_ids
    ]


@callback(
    Output('control-store', 'data', allow_duplicate=True),
    Input('play-btn', 'n_clicks'),
    prevent_initial_call=True
)
def toggle_playback(n_clicks):
    state.toggle_playback()
    return {'toggle': n_clicks}


@callback(
    Output('control-store', 'data', allow_duplicate=True),
    Input({'type': 'thumb', 'index': ALL}, 'n_clicks'),
    prevent_initial_call=True
)
def click_thumbnail_to_jump(n_clicks):
    """Click a thumbnail to jump to that frame."""
    if not ctx.triggered or not ctx.triggered[0]['value']:
        return dash.no_update

    index = ctx.triggered_id['index']
    state.seek(index)
    return {'seek': index}


@callback(
    Output('control-store', 'data', allow_duplicate=True),
    Input('timeline-graph', 'clickData'),
    prevent_initial_call=True
)
def click_timeline_to_jump(click_data):
    """Click on the timeline to jump to that frame."""
    if click_data is None:
        return dash.no_update

    try:
        index = int(click_data['points'][0]['customdata'])
    except (KeyError, IndexError, TypeError, ValueError):
        return dash.no_update

    state.seek(index)
    return {'seek': index}


@callback(
    Output('download-json', 'data'),
    Input('export-btn', 'n_clicks'),
    State('frame-rate-slider', 'value'),
    prevent_initial_call=True
)
def export_json(n, frame_rate):
    """Export extracted landmarks as JSON."""
    snap = state.snapshot()
    if snap is None or not snap.has_records:
        return None

    data = {
        'video': state.current_video_path.name if state.current_video_path else '',
        'detector': state.session.backend_name,
        'frame_rate': frame_rate,
        'total_frames': len(snap.records),
        'frames': [r.to_dict() for r in snap.records],
    }

    return dict(
        content=json.dumps(data, indent=2),
        filename=f"pose_replay_{datetime.now():%Y%m%d_%H%M%S}.json"
    )


# ==============================================================================
# RUN
# ==============================================================================

if __name__ == '__main__':
    print("\n" + "="*60)
    print("🧍 Pose Replay Dashboard")
    print("="*60)
    print("Features:")
    print("  • Upload a video and extract pose landmarks")
    print("  • Play / pause the skeleton overlay")
    print("  • Click a thumbnail or timeline point to jump to a frame")
    print("  • Export landmarks as JSON")
    print("="*60)
    print("Open: http://localhost:8050")
    print("="*60 + "\n")

    try:
        app.run(debug=False, port=8050)
    finally:
        state.loop.stop()
