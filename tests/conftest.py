"""Shared synthetic pose builders for the squat analysis tests.

Frames are built as a simple front-on skeleton: ankles fixed at y=0.9, shins
and thighs of length 0.2, a 0.3 torso. The knee angle is exact by
construction, so tests can drive the phase machine and the form scorer with
known angles.
"""

import math
from typing import Iterable, Optional

import numpy as np
import pytest

from squat_coach.landmarks import Landmark, PoseFrame, PoseLandmark

SEGMENT = 0.2
TORSO = 0.3
ANKLE_Y = 0.9
ANKLE_X = {"left": 0.4, "right": 0.6}


def _rotate(v: np.ndarray, deg: float) -> np.ndarray:
    r = math.radians(deg)
    c, s = math.cos(r), math.sin(r)
    return np.array([c * v[0] - s * v[1], s * v[0] + c * v[1]])


def build_frame(
    knee_angle: float = 175.0,
    hip_y: Optional[float] = None,
    torso_lean: float = 0.0,
    knee_width: Optional[float] = None,
    knee_forward: float = 0.0,
    visibility: float = 1.0,
    low_visibility: Iterable[PoseLandmark] = (),
    drop: Iterable[PoseLandmark] = (),
) -> PoseFrame:
    """Synthesize a frame with the given average knee angle.

    Args:
        knee_angle: Interior hip-knee-ankle angle on both sides (deg).
        hip_y: If given, the whole body is shifted vertically so the hips sit here.
        torso_lean: Shoulder lean from vertical toward +x (deg).
        knee_width: Horizontal knee span; defaults to the ankle span (0.2).
        knee_forward: Shift of both knees along +x.
        visibility: Visibility of every joint.
        low_visibility: Joints given visibility 0.3.
        drop: Joints left out of the frame.
    """
    low_visibility = set(low_visibility)
    drop = set(drop)
    pts: dict[PoseLandmark, np.ndarray] = {}

    for side in ("left", "right"):
        up = side.upper()
        ankle = np.array([ANKLE_X[side], ANKLE_Y])
        if knee_width is None:
            knee_x = ankle[0]
        else:
            knee_x = 0.5 - knee_width / 2 if side == "left" else 0.5 + knee_width / 2
        knee_x += knee_forward
        dy = math.sqrt(max(SEGMENT ** 2 - (knee_x - ankle[0]) ** 2, 1e-6))
        knee = np.array([knee_x, ANKLE_Y - dy])

        shin_up = (knee - ankle) / np.linalg.norm(knee - ankle)
        thigh = _rotate(shin_up, -(180.0 - knee_angle)) * SEGMENT
        hip = knee + thigh
        lean = math.radians(torso_lean)
        shoulder = hip + np.array([TORSO * math.sin(lean), -TORSO * math.cos(lean)])

        pts[PoseLandmark[f"{up}_ANKLE"]] = ankle
        pts[PoseLandmark[f"{up}_KNEE"]] = knee
        pts[PoseLandmark[f"{up}_HIP"]] = hip
        pts[PoseLandmark[f"{up}_SHOULDER"]] = shoulder

    pts[PoseLandmark.NOSE] = (pts[PoseLandmark.LEFT_SHOULDER] + pts[PoseLandmark.RIGHT_SHOULDER]) / 2 - [0.0, 0.1]

    shift = 0.0
    if hip_y is not None:
        current = (pts[PoseLandmark.LEFT_HIP][1] + pts[PoseLandmark.RIGHT_HIP][1]) / 2
        shift = hip_y - current

    landmarks = {}
    for joint, p in pts.items():
        if joint in drop:
            continue
        vis = 0.3 if joint in low_visibility else visibility
        landmarks[joint] = Landmark(x=float(p[0]), y=float(p[1] + shift), z=0.0, visibility=vis)
    return PoseFrame(landmarks=landmarks)


@pytest.fixture
def make_frame():
    return build_frame


@pytest.fixture
def standing_frame():
    return build_frame(knee_angle=175.0)


@pytest.fixture
def rng():
    return np.random.RandomState(42)
