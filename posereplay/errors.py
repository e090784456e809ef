"""
Error taxonomy for the extraction pipeline.

Pipeline-level failures (InitError, VideoDecodeError) abort an extraction and
reach the session as a single terminal outcome. Per-frame problems
(SampleDecodeError, DetectError) are absorbed where they happen.
"""
from typing import Optional


class PoseReplayError(Exception):
    """Base class for all posereplay errors."""


class InitError(PoseReplayError):
    """The pose detector could not be initialized."""


class DetectorUnavailable(InitError):
    """The detector reported itself non-functional while detecting."""


class NotInitialized(PoseReplayError):
    """detect() was called before a successful initialize()."""


class DetectError(PoseReplayError):
    """A single frame could not be run through the detector."""


class VideoDecodeError(PoseReplayError):
    """The video itself is unusable (missing, corrupt, unsupported)."""


class SampleDecodeError(PoseReplayError):
    """One timestamp could not be seeked to or decoded."""

    def __init__(self, timestamp: float, reason: Optional[str] = None):
        self.timestamp = timestamp
        message = f"Could not decode frame at {timestamp:.3f}s"
        if reason:
            message += f": {reason}"
        super().__init__(message)
