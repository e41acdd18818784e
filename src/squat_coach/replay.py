"""
Offline replay of recorded pose sequences through a ``SquatSession``.

Usage:
    python -m squat_coach.replay --input session.json --fps 30
    python -m squat_coach.replay --input session.npz --profile responsive \\
        --reference-cycle-ms 6000 --out summary.json

Input formats:
    - JSON ``{"pose_sequence": frames x 33 x 4, "metadata": {"fps": 30}}``
    - JSON bare list ``frames x 33 x 4`` (or x 3 without visibility)
    - ``.npz`` with a ``pose_sequence`` array (optional ``fps`` scalar)
"""

import argparse
import json
import logging
from pathlib import Path
from typing import Optional

import numpy as np

from .config import LOG_LEVEL, AnalyzerConfig, load_analyzer_config
from .landmarks import NUM_LANDMARKS, PoseFrame
from .session import SessionReport, SquatSession

logger = logging.getLogger(__name__)

DEFAULT_FPS: float = 30.0


def _validate_pose_sequence(pose_sequence) -> np.ndarray:
    """Validate and convert a raw pose sequence to a numpy array.

    Args:
        pose_sequence: 3D array-like (frames × 33 × 4, or × 3 without visibility).

    Returns:
        np.ndarray of shape (N, 33, 3|4).

    Raises:
        ValueError: If the shape is invalid.
    """
    arr = np.asarray(pose_sequence, dtype=np.float64)

    if arr.ndim != 3:
        raise ValueError(
            f"pose_sequence must be 3-dimensional (frames × 33 × 4), "
            f"got shape {arr.shape}."
        )
    if arr.shape[1] != NUM_LANDMARKS:
        raise ValueError(
            f"Expected {NUM_LANDMARKS} landmarks per frame, got {arr.shape[1]}."
        )
    if arr.shape[2] not in (3, 4):
        raise ValueError(
            f"Expected 3 or 4 values per landmark (x, y, z[, visibility]), "
            f"got {arr.shape[2]}."
        )

    return arr


def load_pose_sequence(path: Path) -> tuple[np.ndarray, Optional[float]]:
    """Read a recorded session from JSON or NPZ.

    Returns:
        ``(pose_sequence, fps)``; ``fps`` is None when the file does not carry one.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Pose sequence file not found: {path}")

    fps = None
    if path.suffix == ".npz":
        with np.load(path) as data:
            if "pose_sequence" not in data.files:
                raise ValueError(f"{path} has no 'pose_sequence' array.")
            seq = data["pose_sequence"]
            if "fps" in data.files:
                fps = float(data["fps"])
    else:
        with open(path, "r") as f:
            payload = json.load(f)
        if isinstance(payload, dict):
            if "pose_sequence" not in payload:
                raise ValueError(f"{path} has no 'pose_sequence' key.")
            seq = payload["pose_sequence"]
            fps = (payload.get("metadata") or {}).get("fps")
        else:
            seq = payload

    return _validate_pose_sequence(seq), (float(fps) if fps is not None else None)


def replay_sequence(
    pose_sequence: np.ndarray,
    fps: float = DEFAULT_FPS,
    config: Optional[AnalyzerConfig] = None,
    reference_cycle_ms: Optional[float] = None,
) -> SessionReport:
    """Feed every frame through a fresh session at evenly spaced timestamps.

    Raises:
        ValueError: If ``fps`` is not positive or the sequence is malformed.
    """
    if fps <= 0:
        raise ValueError(f"fps must be positive, got {fps}.")
    arr = _validate_pose_sequence(pose_sequence)

    session = SquatSession(config=config, reference_cycle_ms=reference_cycle_ms)
    frame_ms = 1000.0 / fps
    logger.info("Replaying %d frames at %.1f fps", arr.shape[0], fps)

    for i, raw in enumerate(arr):
        session.process_frame(PoseFrame.from_array(raw), timestamp_ms=i * frame_ms)

    report = session.summary()
    logger.info(
        "Replay done: %d reps, average rep score %.0f, %d/%d frames not visible",
        report.rep_count, report.summary.average_form_score,
        report.invalid_frames, report.frames_processed,
    )
    return report


def main(argv: Optional[list[str]] = None) -> int:
    ap = argparse.ArgumentParser(
        description="Replay a recorded pose sequence through the squat analyzer.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m squat_coach.replay --input session.json
  python -m squat_coach.replay --input session.npz --fps 25 --profile responsive
  python -m squat_coach.replay --input session.json --reference-cycle-ms 6000 --out summary.json
""",
    )
    ap.add_argument("--input", required=True, help="Recorded session (.json or .npz).")
    ap.add_argument("--fps", type=float, default=None, help="Frame rate (overrides the file's metadata).")
    ap.add_argument("--profile", default=None, help="Threshold profile from the YAML config.")
    ap.add_argument("--config", default=None, help="Path to a threshold YAML file.")
    ap.add_argument(
        "--reference-cycle-ms", type=float, default=None,
        help="Also compare each frame against the reference squat with this cycle length.",
    )
    ap.add_argument("--out", default=None, help="Write the session report JSON here.")
    ap.add_argument("--log-level", default=LOG_LEVEL, help="Logging level.")

    args = ap.parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s | %(name)s | %(message)s")

    try:
        config = load_analyzer_config(profile=args.profile, path=args.config)
        seq, file_fps = load_pose_sequence(Path(args.input))
        fps = args.fps or file_fps or DEFAULT_FPS
        report = replay_sequence(
            seq, fps=fps, config=config, reference_cycle_ms=args.reference_cycle_ms,
        )
    except (ValueError, FileNotFoundError) as e:
        logger.error("%s", e)
        return 1

    result = report.model_dump(mode="json")
    if args.out:
        with open(args.out, "w") as f:
            json.dump(result, f, indent=2)
        logger.info("Report written to %s", args.out)

    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
