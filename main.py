"""
================================================================================
POSE REPLAY - COMMAND LINE RUNNER
================================================================================
Extracts pose landmarks from a video and optionally replays them.

Usage:
    # Process a video with the on-device detector
    python main.py --video path/to/jump.mp4

    # Sample at 5 Hz with the fast preset
    python main.py --preset fast --video jump.mp4

    # No model file needed: synthetic landmarks
    python main.py --backend simulated --video jump.mp4 --play

    # Save landmarks and annotated stills
    python main.py --video jump.mp4 --output-dir output --save-frames
================================================================================
"""

import argparse
import asyncio
import json
import sys
import time
from pathlib import Path
from typing import Optional

import cv2

# ==============================================================================
# Add project root to path
# ==============================================================================
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from configs.config import (
    DETECTOR_BACKENDS,
    PoseReplayConfig,
    get_fast_config,
    get_accurate_config,
    get_offline_config,
)
from posereplay.logger import setup_logging
from posereplay.playback import PlaybackState
from posereplay.scrub_index import format_timestamp
from posereplay.session import OutcomeKind, PoseReplaySession
from posereplay.visualizer import SkeletonVisualizer


# ==============================================================================
# MODEL CHECK
# ==============================================================================

def check_model_exists(model_path: Path) -> bool:
    """Check if the model bundle exists, print helpful message if not."""
    if not Path(model_path).exists():
        print("\n" + "=" * 60)
        print("MODEL DOWNLOAD REQUIRED")
        print("=" * 60)
        print(f"  Model '{model_path}' not found locally.")
        print("  Run: python download_model.py")
        print("  Or use --backend simulated to run without a model.")
        print("=" * 60 + "\n")
        return False
    return True


# ==============================================================================
# MAIN RUNNER
# ==============================================================================

class PoseReplayRunner:
    """
    Runs one session from the command line.

    Example:
        >>> runner = PoseReplayRunner(get_offline_config())
        >>> asyncio.run(runner.run("jump.mp4", play=True))
    """

    def __init__(self, config: Optional[PoseReplayConfig] = None):
        self.config = config or PoseReplayConfig()
        self.visualizer = SkeletonVisualizer(self.config.overlay)

    async def run(
        self,
        video_path: Path,
        play: bool = False,
        output_dir: Optional[Path] = None,
        save_frames: bool = False,
    ) -> dict:
        """
        Process a video, print the per-frame summary, optionally replay it.

        Returns:
            Dictionary with processing results and statistics
        """
        video_path = Path(video_path)
        start_time = time.time()

        print("\n" + "=" * 60)
        print(f"PROCESSING: {video_path.name}")
        print("=" * 60)

        session = PoseReplaySession(self.config)
        try:
            # -------------------------------------------------------------------
            # Step 1: Extract poses
            # -------------------------------------------------------------------
            print(f"\n[Step 1/3] Extracting poses ({session.backend_name} detector, "
                  f"{self.config.sampling.frame_rate:g} Hz)...")
            outcome = await session.process(video_path)
            elapsed = time.time() - start_time
            snapshot = session.snapshot()

            if outcome.kind is OutcomeKind.FAILED:
                print(f"  ✗ {outcome.message}")
                if outcome.error:
                    print(f"    {outcome.error}")
            else:
                print(f"  ✓ {outcome.message}")

            # -------------------------------------------------------------------
            # Step 2: Summary and outputs
            # -------------------------------------------------------------------
            print("\n[Step 2/3] Frame summary...")
            for entry in session.scrub:
                record = snapshot.records[entry.index]
                print(f"  Frame {entry.index + 1:>4}  {entry.label:>7}  "
                      f"visibility {record.landmarks.mean_visibility:.0%}")

            if output_dir is not None and snapshot.has_records:
                self._save_outputs(video_path, snapshot.records, Path(output_dir), save_frames)

            # -------------------------------------------------------------------
            # Step 3: Replay
            # -------------------------------------------------------------------
            if play and snapshot.has_records:
                print("\n[Step 3/3] Replaying...")
                await self._replay(session)
            else:
                print("\n[Step 3/3] Skipping replay")
        finally:
            await session.close()

        summary = {
            "video": str(video_path),
            "outcome": outcome.kind.value,
            "message": outcome.message,
            "num_frames": len(snapshot.records),
            "processing_time_seconds": elapsed,
            "detector_fps": session.adapter.get_average_fps(),
        }

        print("\n" + "=" * 60)
        print("PROCESSING COMPLETE")
        print("=" * 60)
        print(f"  Frames: {summary['num_frames']}")
        print(f"  Time: {elapsed:.1f}s")
        print(f"  Detector speed: {summary['detector_fps']:.1f} FPS")
        print("=" * 60 + "\n")

        return summary

    async def _replay(self, session: PoseReplaySession) -> None:
        """Play once through; the controller rewinds and pauses at the end."""
        finished = asyncio.Event()
        total = len(session.snapshot().records)

        def on_state(state: PlaybackState) -> None:
            record = state.current_record
            print(f"\r  Frame {state.current_index + 1}/{total} | "
                  f"Time: {record.timestamp:.2f}s", end="", flush=True)
            if not state.is_playing:
                finished.set()

        unsubscribe = session.controller.subscribe(on_state)
        try:
            session.play()
            await finished.wait()
        finally:
            unsubscribe()
        print()

    def _save_outputs(self, video_path: Path, records, output_dir: Path, save_frames: bool) -> None:
        """Save landmark data to JSON (and annotated stills if requested)."""
        landmarks_dir = output_dir / "landmarks"
        landmarks_dir.mkdir(parents=True, exist_ok=True)
        landmarks_path = landmarks_dir / f"{video_path.stem}_landmarks.json"

        data = {
            "video": str(video_path),
            "frame_rate": self.config.sampling.frame_rate,
            "detector": self.config.detector.backend,
            "frames": [r.to_dict() for r in records],
        }
        with open(landmarks_path, "w") as f:
            json.dump(data, f, indent=2)
        print(f"  ✓ Saved: {landmarks_path}")

        if not save_frames:
            return

        frames_dir = output_dir / "frames" / video_path.stem
        frames_dir.mkdir(parents=True, exist_ok=True)
        for idx, record in enumerate(records):
            label = format_timestamp(record.timestamp_ms).replace(".", "_")
            cv2.imwrite(str(frames_dir / f"{idx:04d}_{label}.jpg"), self.visualizer.render(record))
        print(f"  ✓ Saved {len(records)} annotated frames to {frames_dir}")


# ==============================================================================
# COMMAND LINE INTERFACE
# ==============================================================================

def parse_args():
    parser = argparse.ArgumentParser(
        description="Pose Replay: extract and replay pose landmarks from a video",
    )

    parser.add_argument("--video", "-v", type=str, required=True, help="Path to video file")
    parser.add_argument("--frame-rate", "-r", type=float, help="Samples per second")
    parser.add_argument("--backend", "-b", choices=list(DETECTOR_BACKENDS), help="Pose detector backend")
    parser.add_argument("--model", "-m", type=str, help="Path to MediaPipe .task model bundle")
    parser.add_argument("--remote-url", type=str, help="Base URL of a remote pose service")
    parser.add_argument(
        "--preset", "-p",
        choices=["default", "fast", "accurate", "offline"],
        default="default",
        help="Configuration preset"
    )
    parser.add_argument("--play", action="store_true", help="Replay the extracted poses")
    parser.add_argument("--output-dir", "-o", type=str, help="Save landmarks JSON here")
    parser.add_argument("--save-frames", action="store_true", help="Also save annotated stills")
    parser.add_argument("--verbose", action="store_true", help="Verbose output")

    return parser.parse_args()


def get_config_for_preset(preset: str) -> PoseReplayConfig:
    presets = {
        "default": PoseReplayConfig,
        "fast": get_fast_config,
        "accurate": get_accurate_config,
        "offline": get_offline_config,
    }
    return presets[preset]()


def main():
    args = parse_args()

    print("\n" + "=" * 60)
    print("POSE REPLAY")
    print("=" * 60)

    # Load configuration
    config = get_config_for_preset(args.preset)

    if args.frame_rate:
        config.sampling.frame_rate = args.frame_rate
    if args.backend:
        config.detector.backend = args.backend
    if args.model:
        config.detector.model_path = Path(args.model)
    if args.remote_url:
        config.detector.remote_url = args.remote_url
    if args.verbose:
        config.logging.level = "DEBUG"

    try:
        config.validate()
    except ValueError as e:
        print(f"ERROR: {e}")
        sys.exit(2)

    setup_logging(config.logging.level)

    if args.verbose:
        config.print_summary()

    if config.detector.backend == "mediapipe":
        check_model_exists(config.detector.model_path)

    runner = PoseReplayRunner(config)
    summary = asyncio.run(runner.run(
        Path(args.video),
        play=args.play,
        output_dir=Path(args.output_dir) if args.output_dir else None,
        save_frames=args.save_frames,
    ))

    if summary["outcome"] == OutcomeKind.FAILED.value:
        sys.exit(1)

    print("\n✓ Pipeline complete!")


if __name__ == "__main__":
    main()
