"""
================================================================================
POSE REPLAY SESSION
================================================================================
The boundary a UI talks to. Owns one pipeline (video source, inference
adapter, assembler) and one playback controller, and turns every way an
extraction can end into a single ProcessingOutcome:

    SUCCESS     "Processed N frames with pose landmarks!"
    NO_POSES    "No poses were detected in the video"
    FAILED      "Pose detection unavailable" / "Failed to process video"

A new upload cancels the running extraction. Each extraction carries a
generation number; a result that arrives for an older generation is
discarded and never reaches the controller.

All methods must be called on the session's event loop.
================================================================================
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple, Union

from configs.config import PoseReplayConfig
from posereplay.assembler import FrameRecord, FrameRecordAssembler
from posereplay.detectors import PoseDetector, create_detector
from posereplay.errors import InitError, VideoDecodeError
from posereplay.logger import get_logger
from posereplay.playback import PlaybackController, PlaybackState
from posereplay.pose_estimator import PoseInferenceAdapter
from posereplay.scrub_index import ScrubIndex
from posereplay.video_processor import FrameSampler, OpenCVVideoSource, VideoSource

logger = get_logger(__name__)

MSG_NO_POSES = "No poses were detected in the video"
MSG_DETECTOR_UNAVAILABLE = "Pose detection unavailable"
MSG_PROCESSING_FAILED = "Failed to process video"
MSG_SUPERSEDED = "Superseded by a newer upload"


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    NO_POSES = "no_poses"
    FAILED = "failed"
    SUPERSEDED = "superseded"


@dataclass(frozen=True)
class ProcessingOutcome:
    kind: OutcomeKind
    message: str
    frame_count: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.kind in (OutcomeKind.SUCCESS, OutcomeKind.NO_POSES)

    @classmethod
    def success(cls, frame_count: int) -> "ProcessingOutcome":
        return cls(
            OutcomeKind.SUCCESS,
            f"Processed {frame_count} frames with pose landmarks!",
            frame_count=frame_count,
        )

    @classmethod
    def no_poses(cls) -> "ProcessingOutcome":
        return cls(OutcomeKind.NO_POSES, MSG_NO_POSES)

    @classmethod
    def failed(cls, message: str, error: Optional[BaseException] = None) -> "ProcessingOutcome":
        return cls(OutcomeKind.FAILED, message, error=str(error) if error else None)

    @classmethod
    def superseded(cls) -> "ProcessingOutcome":
        return cls(OutcomeKind.SUPERSEDED, MSG_SUPERSEDED)


@dataclass(frozen=True)
class ProcessingProgress:
    done: int = 0
    total: int = 0

    @property
    def fraction(self) -> float:
        return self.done / self.total if self.total else 0.0


@dataclass(frozen=True)
class SessionSnapshot:
    """Everything one render needs, read at a single instant."""
    records: Tuple[FrameRecord, ...]
    current_index: Optional[int]
    is_playing: bool
    processing: bool
    progress: ProcessingProgress
    outcome: Optional[ProcessingOutcome]

    @property
    def current_record(self) -> Optional[FrameRecord]:
        if self.current_index is None:
            return None
        return self.records[self.current_index]

    @property
    def has_records(self) -> bool:
        return bool(self.records)


class PoseReplaySession:
    """
    One upload-process-replay session.

    Example:
        >>> session = PoseReplaySession(get_offline_config())
        >>> outcome = await session.process("jump.mp4")
        >>> print(outcome.message)
        >>> session.play()
        >>> await session.close()
    """

    def __init__(
        self,
        config: Optional[PoseReplayConfig] = None,
        detector: Optional[PoseDetector] = None,
        video_source: Optional[VideoSource] = None,
        controller: Optional[PlaybackController] = None,
    ):
        self.config = config or PoseReplayConfig()
        self.video_source = video_source or OpenCVVideoSource()
        self.adapter = PoseInferenceAdapter(detector or create_detector(self.config.detector))
        self.assembler = FrameRecordAssembler(
            self.adapter,
            FrameSampler(self.video_source, max_dimension=self.config.sampling.max_dimension),
            thumbnails=self.config.thumbnails,
        )
        self.controller = controller or PlaybackController(
            tick_interval=self.config.playback.tick_interval
        )
        self.scrub = ScrubIndex(self.controller)

        self._generation = 0
        self._job: Optional[asyncio.Task] = None
        self._processing = False
        self._progress = ProcessingProgress()
        self._outcome: Optional[ProcessingOutcome] = None
        self._closed = False

    @property
    def backend_name(self) -> str:
        return self.adapter.backend_name

    @property
    def processing(self) -> bool:
        return self._processing

    @property
    def outcome(self) -> Optional[ProcessingOutcome]:
        return self._outcome

    # --------------------------------------------------------------------------
    # Processing
    # --------------------------------------------------------------------------

    def start_processing(
        self,
        uri: Union[str, Path],
        frame_rate: Optional[float] = None,
    ) -> "asyncio.Task[ProcessingOutcome]":
        """Schedule process() as a task, cancelling any extraction in flight."""
        self._check_open()
        self._cancel_job()
        self._job = asyncio.get_running_loop().create_task(self.process(uri, frame_rate))
        return self._job

    async def process(
        self,
        uri: Union[str, Path],
        frame_rate: Optional[float] = None,
    ) -> ProcessingOutcome:
        """
        Extract pose records from a video and load them for playback.

        Never raises for pipeline failures; they come back as a FAILED
        outcome and the controller keeps its previous state.
        """
        self._check_open()
        if self._job is not asyncio.current_task():
            self._cancel_job()

        frame_rate = frame_rate or self.config.sampling.frame_rate
        self._generation += 1
        generation = self._generation

        self.controller.pause()
        self._processing = True
        self._progress = ProcessingProgress()
        self._outcome = None

        def on_progress(done: int, total: int) -> None:
            if generation == self._generation:
                self._progress = ProcessingProgress(done, total)

        logger.info(f"Processing {uri} at {frame_rate:g} Hz with '{self.backend_name}' detector")

        try:
            records = await self._extract(uri, frame_rate, on_progress)
        except InitError as e:
            logger.error(f"Pose detection unavailable: {e}")
            outcome = ProcessingOutcome.failed(MSG_DETECTOR_UNAVAILABLE, e)
            records = None
        except VideoDecodeError as e:
            logger.error(f"Failed to process video: {e}")
            outcome = ProcessingOutcome.failed(MSG_PROCESSING_FAILED, e)
            records = None
        except Exception as e:
            logger.exception(f"Unexpected error while processing {uri}")
            outcome = ProcessingOutcome.failed(MSG_PROCESSING_FAILED, e)
            records = None
        finally:
            if generation == self._generation:
                self._processing = False

        if generation != self._generation or self._closed:
            logger.info(f"Discarding result for superseded upload: {uri}")
            return ProcessingOutcome.superseded()

        if records is not None:
            self.controller.load(records)
            outcome = ProcessingOutcome.success(len(records)) if records else ProcessingOutcome.no_poses()

        self._outcome = outcome
        logger.info(outcome.message)
        return outcome

    async def _extract(self, uri, frame_rate, on_progress) -> Tuple[FrameRecord, ...]:
        handle = await asyncio.to_thread(self.video_source.open, uri)
        logger.info(f"Opened video\n{handle}")
        try:
            return await self.assembler.assemble(handle, frame_rate, on_progress)
        finally:
            await asyncio.to_thread(self.video_source.close, handle)

    def _cancel_job(self) -> None:
        job, self._job = self._job, None
        if job is not None and not job.done():
            logger.info("Cancelling running extraction")
            job.cancel()
        self._generation += 1
        self._processing = False

    # --------------------------------------------------------------------------
    # Playback
    # --------------------------------------------------------------------------

    def play(self) -> PlaybackState:
        return self.controller.play()

    def pause(self) -> PlaybackState:
        return self.controller.pause()

    def toggle_playback(self) -> PlaybackState:
        return self.controller.toggle()

    def seek(self, index: int) -> PlaybackState:
        return self.scrub.select(index)

    def snapshot(self) -> SessionSnapshot:
        state = self.controller.state
        return SessionSnapshot(
            records=state.records,
            current_index=state.current_index,
            is_playing=state.is_playing,
            processing=self._processing,
            progress=self._progress,
            outcome=self._outcome,
        )

    # --------------------------------------------------------------------------
    # Lifecycle
    # --------------------------------------------------------------------------

    async def close(self) -> None:
        """Cancel extraction, stop playback and release the detector. Idempotent."""
        if self._closed:
            return
        self._closed = True

        job = self._job
        self._cancel_job()
        if job is not None:
            await asyncio.gather(job, return_exceptions=True)

        self.controller.close()
        await self.adapter.close()
        logger.info("Session closed")

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("Session is closed")
