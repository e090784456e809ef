"""Source package for the pose extraction and replay pipeline."""
from posereplay.landmarks import (
    Landmark,
    LandmarkSet,
    POSE_LANDMARK_NAMES,
)
from posereplay.video_processor import (
    FrameSampler,
    OpenCVVideoSource,
    VideoHandle,
    FrameData,
    sample_timestamps,
)
from posereplay.pose_estimator import (
    PoseInferenceAdapter,
    create_adapter,
)
from posereplay.assembler import (
    FrameRecord,
    FrameRecordAssembler,
)
from posereplay.playback import (
    PlaybackController,
    PlaybackState,
)
from posereplay.visualizer import (
    OverlayProjector,
    SkeletonVisualizer,
)
from posereplay.scrub_index import ScrubIndex
from posereplay.session import (
    PoseReplaySession,
    ProcessingOutcome,
    OutcomeKind,
)
