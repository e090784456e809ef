#!/usr/bin/env python3
"""
================================================================================
MODEL DOWNLOAD UTILITY
================================================================================
Downloads MediaPipe pose-landmarker model bundles (.task files).

The model bundles are not included in this repository. The on-device
detector expects one next to the working directory (pose_landmarker_lite.task
by default).

Usage:
    python download_model.py              # Download default model (lite)
    python download_model.py --model full # Download the full model
    python download_model.py --all        # Download all model variants
================================================================================
"""

import argparse
from pathlib import Path

import requests


MODEL_URL = (
    "https://storage.googleapis.com/mediapipe-models/pose_landmarker/"
    "pose_landmarker_{variant}/float16/latest/pose_landmarker_{variant}.task"
)

# Model variants and their approximate sizes
MODELS = {
    "lite": ("pose_landmarker_lite.task", "~6 MB"),
    "full": ("pose_landmarker_full.task", "~9 MB"),
    "heavy": ("pose_landmarker_heavy.task", "~30 MB"),
}

DEFAULT_MODEL = "lite"
CHUNK_SIZE = 1 << 16


def download_model(
    variant: str = DEFAULT_MODEL,
    force: bool = False,
    output_dir: Path = Path("."),
    timeout: float = 60.0,
) -> Path:
    """
    Download a pose-landmarker model variant.

    Args:
        variant: Model variant (lite/full/heavy)
        force: Re-download even if file exists
        output_dir: Directory to write the bundle into
        timeout: Per-request timeout in seconds

    Returns:
        Path to downloaded model file
    """
    if variant not in MODELS:
        raise ValueError(f"Unknown variant '{variant}'. Choose from: {list(MODELS.keys())}")

    model_name, size = MODELS[variant]
    model_path = Path(output_dir) / model_name

    if model_path.exists() and not force:
        print(f"✓ Model already exists: {model_path}")
        return model_path

    url = MODEL_URL.format(variant=variant)
    print(f"Downloading {model_name} ({size})...")
    print(f"  {url}\n")

    partial_path = model_path.with_suffix(model_path.suffix + ".part")
    model_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with requests.get(url, stream=True, timeout=timeout) as response:
            response.raise_for_status()
            with open(partial_path, "wb") as f:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    f.write(chunk)
    except requests.RequestException as e:
        partial_path.unlink(missing_ok=True)
        print(f"ERROR: Failed to download model: {e}")
        raise

    partial_path.replace(model_path)
    print(f"✓ Successfully downloaded: {model_path}")
    return model_path


def download_all(force: bool = False, output_dir: Path = Path(".")) -> None:
    """Download all model variants."""
    print("Downloading all pose-landmarker model variants...\n")

    for variant in MODELS:
        try:
            download_model(variant, force=force, output_dir=output_dir)
        except requests.RequestException as e:
            print(f"  ✗ Failed to download {variant}: {e}")
        print()


def main():
    parser = argparse.ArgumentParser(
        description="Download MediaPipe pose-landmarker model bundles",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Model Variants:
  lite   (~6 MB)  - Fastest, good for live preview (default)
  full   (~9 MB)  - Balanced
  heavy  (~30 MB) - Slowest, highest accuracy

Examples:
  python download_model.py                # Download pose_landmarker_lite.task
  python download_model.py --model heavy  # Download pose_landmarker_heavy.task
  python download_model.py --all          # Download all variants
        """
    )

    parser.add_argument(
        "--model", "-m",
        choices=list(MODELS.keys()),
        default=DEFAULT_MODEL,
        help=f"Model variant to download (default: {DEFAULT_MODEL})"
    )
    parser.add_argument(
        "--all", "-a",
        action="store_true",
        help="Download all model variants"
    )
    parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Re-download even if model exists"
    )
    parser.add_argument(
        "--output-dir", "-o",
        type=Path,
        default=Path("."),
        help="Directory to save model bundles (default: current directory)"
    )

    args = parser.parse_args()

    print("=" * 60)
    print("Pose Landmarker Model Downloader")
    print("=" * 60 + "\n")

    if args.all:
        download_all(force=args.force, output_dir=args.output_dir)
    else:
        download_model(args.model, force=args.force, output_dir=args.output_dir)

    print("\n✓ Done!")


if __name__ == "__main__":
    main()
