"""
Reference motion model: an idealized squat as eight authored keyframes.

Provides
  - ``squat_progress``: wall-clock time → normalized cycle progress (0..1),
    with a slower descent, a short hold at depth and a quicker ascent;
  - ``interpolate_keyframes``: progress → joint-angle targets, eased with a
    cubic ease-in-out between the bracketing keyframes;
  - ``synthesize_reference_pose``: joint-angle targets → a full 33-joint
    ``PoseFrame`` laid out as a side view.

The synthesized pose is a planar chain (ankle → knee → hip → shoulder) whose
image-plane knee, hip and torso angles equal the targets exactly, so scoring
it against its own keyframe gives a perfect result.
"""

import math

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from .config import DESCENT_FRACTION, PAUSE_FRACTION, REFERENCE_CYCLE_MS
from .landmarks import Landmark, PoseFrame, PoseLandmark as PL
from .phase import Phase


class SquatKeyframe(BaseModel):
    """Target joint angles (degrees) at one point of the ideal cycle."""

    model_config = ConfigDict(frozen=True)

    name: str
    progress: float = Field(ge=0.0, le=1.0)
    knee_angle: float
    hip_angle: float
    ankle_angle: float
    torso_angle: float
    description: str = ""


SQUAT_KEYFRAMES: tuple[SquatKeyframe, ...] = (
    SquatKeyframe(
        name="Standing", progress=0.0,
        knee_angle=175, hip_angle=175, ankle_angle=90, torso_angle=5,
        description="Starting position - fully extended",
    ),
    SquatKeyframe(
        name="Early Descent", progress=0.20,
        knee_angle=155, hip_angle=150, ankle_angle=85, torso_angle=15,
        description="Initiating descent with hip hinge",
    ),
    SquatKeyframe(
        name="Mid Descent", progress=0.40,
        knee_angle=130, hip_angle=120, ankle_angle=75, torso_angle=30,
        description="Halfway down with controlled movement",
    ),
    SquatKeyframe(
        name="Bottom Position", progress=0.50,
        knee_angle=110, hip_angle=95, ankle_angle=70, torso_angle=45,
        description="Full depth - hip below knee",
    ),
    SquatKeyframe(
        name="Early Ascent", progress=0.65,
        knee_angle=130, hip_angle=120, ankle_angle=75, torso_angle=35,
        description="Driving up through heels",
    ),
    SquatKeyframe(
        name="Mid Ascent", progress=0.80,
        knee_angle=155, hip_angle=150, ankle_angle=85, torso_angle=20,
        description="Extending hips and knees",
    ),
    SquatKeyframe(
        name="Near Complete", progress=0.95,
        knee_angle=170, hip_angle=170, ankle_angle=88, torso_angle=8,
        description="Almost fully extended",
    ),
    SquatKeyframe(
        name="Standing Complete", progress=1.0,
        knee_angle=175, hip_angle=175, ankle_angle=90, torso_angle=5,
        description="Completed rep - ready for next",
    ),
)


# ---------------------------------------------------------------------------
# Timing
# ---------------------------------------------------------------------------

def ease_in_out_cubic(t: float) -> float:
    if t < 0.5:
        return 4.0 * t * t * t
    return 1.0 - ((-2.0 * t + 2.0) ** 3) / 2.0


def squat_progress(timestamp_ms: float, cycle_ms: float = REFERENCE_CYCLE_MS) -> float:
    """Map a timestamp to progress through the ideal cycle.

    The first half of the cycle descends (progress 0 → 0.5), a short pause
    holds at 0.5, and the remainder ascends (0.5 → 1.0).

    Raises:
        ValueError: If ``cycle_ms`` is not positive.
    """
    if cycle_ms <= 0:
        raise ValueError(f"cycle_ms must be positive, got {cycle_ms}.")

    descend = cycle_ms * DESCENT_FRACTION
    pause = cycle_ms * PAUSE_FRACTION
    ascend = cycle_ms - descend - pause
    t = float(timestamp_ms) % cycle_ms

    if t < descend:
        return (t / descend) * 0.5
    if t < descend + pause:
        return 0.5
    return 0.5 + ((t - descend - pause) / ascend) * 0.5


def reference_phase(progress: float) -> Phase:
    """Phase label for a point of the ideal cycle."""
    if progress < 0.05 or progress >= 0.95:
        return Phase.STANDING
    if progress < 0.45:
        return Phase.DESCENDING
    if progress < 0.6:
        return Phase.BOTTOM
    return Phase.ASCENDING


def interpolate_keyframes(
    progress: float,
    keyframes: tuple[SquatKeyframe, ...] = SQUAT_KEYFRAMES,
) -> SquatKeyframe:
    """Eased joint-angle targets at *progress*; clamps outside [0, 1]."""
    if progress <= keyframes[0].progress:
        return keyframes[0]
    if progress >= keyframes[-1].progress:
        return keyframes[-1]

    lower, upper = keyframes[0], keyframes[-1]
    for a, b in zip(keyframes, keyframes[1:]):
        if a.progress <= progress <= b.progress:
            lower, upper = a, b
            break

    span = upper.progress - lower.progress
    local = 0.0 if span == 0 else (progress - lower.progress) / span
    eased = ease_in_out_cubic(local)

    def lerp(attr: str) -> float:
        lo, hi = getattr(lower, attr), getattr(upper, attr)
        return lo + (hi - lo) * eased

    return SquatKeyframe(
        name=f"Interpolated {progress * 100:.1f}%",
        progress=progress,
        knee_angle=lerp("knee_angle"),
        hip_angle=lerp("hip_angle"),
        ankle_angle=lerp("ankle_angle"),
        torso_angle=lerp("torso_angle"),
        description="Interpolated frame",
    )


# ---------------------------------------------------------------------------
# Pose synthesis
# ---------------------------------------------------------------------------

BODY_PROPORTIONS = {
    "shin": 0.25,
    "thigh": 0.25,
    "torso": 0.30,
    "neck": 0.08,
    "upper_arm": 0.15,
    "forearm": 0.14,
    "foot": 0.12,
    "shoulder_width": 0.20,
    "hip_width": 0.19,
    "ankle_width": 0.17,
}

# Side view: the figure faces toward smaller x.
REFERENCE_FACING: float = -1.0
ANKLE_X: float = 0.5
ANKLE_Y: float = 0.85


def _step(origin: np.ndarray, lean_deg: float, length: float) -> np.ndarray:
    """Move *length* from *origin* along a direction leaning *lean_deg* from vertical-up.

    Positive lean points the way the figure faces. Image y grows downward.
    """
    rad = math.radians(lean_deg)
    return origin + np.array([REFERENCE_FACING * length * math.sin(rad), -length * math.cos(rad)])


def _pair(point: np.ndarray, half_width: float, z: float = 0.0) -> tuple[Landmark, Landmark]:
    x, y = float(point[0]), float(point[1])
    return (
        Landmark(x=x, y=y, z=z - half_width, visibility=1.0),
        Landmark(x=x, y=y, z=z + half_width, visibility=1.0),
    )


def shin_lean(keyframe: SquatKeyframe) -> float:
    """Forward shin lean (deg) that makes the knee, hip and torso targets consistent."""
    return keyframe.hip_angle + keyframe.torso_angle - keyframe.knee_angle


def synthesize_reference_pose(keyframe: SquatKeyframe) -> PoseFrame:
    """Place all 33 joints for the given angle targets (side view, visibility 1.0)."""
    p = BODY_PROPORTIONS
    s = shin_lean(keyframe)
    thigh_lean = s - (180.0 - keyframe.knee_angle)
    torso_lean = keyframe.torso_angle

    ankle = np.array([ANKLE_X, ANKLE_Y])
    knee = _step(ankle, s, p["shin"])
    hip = _step(knee, thigh_lean, p["thigh"])
    shoulder = _step(hip, torso_lean, p["torso"])
    head = _step(shoulder, torso_lean, p["neck"])

    # Arms reach forward as the squat deepens, for balance.
    depth_factor = float(np.clip((175.0 - keyframe.knee_angle) / 65.0, 0.0, 1.0))
    arm_raise = 180.0 - 70.0 * depth_factor
    elbow = _step(shoulder, arm_raise, p["upper_arm"])
    wrist = _step(elbow, arm_raise - 10.0, p["forearm"])

    forward = np.array([REFERENCE_FACING, 0.0])
    heel = ankle + np.array([-REFERENCE_FACING * 0.04, 0.02])
    toe = ankle + forward * p["foot"] + np.array([0.0, 0.03])

    pts: dict[PL, Landmark] = {}

    def put(left: PL, right: PL, point: np.ndarray, half_width: float) -> None:
        pts[left], pts[right] = _pair(point, half_width)

    put(PL.LEFT_ANKLE, PL.RIGHT_ANKLE, ankle, p["ankle_width"] / 2)
    put(PL.LEFT_HEEL, PL.RIGHT_HEEL, heel, p["ankle_width"] / 2)
    put(PL.LEFT_FOOT_INDEX, PL.RIGHT_FOOT_INDEX, toe, p["ankle_width"] / 2)
    put(PL.LEFT_KNEE, PL.RIGHT_KNEE, knee, p["ankle_width"] / 2)
    put(PL.LEFT_HIP, PL.RIGHT_HIP, hip, p["hip_width"] / 2)
    put(PL.LEFT_SHOULDER, PL.RIGHT_SHOULDER, shoulder, p["shoulder_width"] / 2)
    put(PL.LEFT_ELBOW, PL.RIGHT_ELBOW, elbow, p["shoulder_width"] / 2)
    put(PL.LEFT_WRIST, PL.RIGHT_WRIST, wrist, p["shoulder_width"] / 2)
    put(PL.LEFT_PINKY, PL.RIGHT_PINKY, wrist + forward * 0.02 + np.array([0.0, 0.01]), p["shoulder_width"] / 2)
    put(PL.LEFT_INDEX, PL.RIGHT_INDEX, wrist + forward * 0.025, p["shoulder_width"] / 2)
    put(PL.LEFT_THUMB, PL.RIGHT_THUMB, wrist + forward * 0.015 - np.array([0.0, 0.01]), p["shoulder_width"] / 2 - 0.01)

    face = head + forward * 0.03
    put(PL.LEFT_EAR, PL.RIGHT_EAR, head - forward * 0.01, 0.04)
    put(PL.LEFT_EYE, PL.RIGHT_EYE, face - np.array([0.0, 0.01]), 0.015)
    put(PL.LEFT_EYE_INNER, PL.RIGHT_EYE_INNER, face - np.array([0.0, 0.01]), 0.0075)
    put(PL.LEFT_EYE_OUTER, PL.RIGHT_EYE_OUTER, face - np.array([0.0, 0.01]), 0.0225)
    put(PL.MOUTH_LEFT, PL.MOUTH_RIGHT, face + np.array([0.0, 0.03]), 0.0125)
    pts[PL.NOSE] = Landmark(x=float(face[0] + REFERENCE_FACING * 0.01), y=float(face[1]), z=0.0, visibility=1.0)

    return PoseFrame(landmarks=pts)


def reference_pose_at(timestamp_ms: float, cycle_ms: float = REFERENCE_CYCLE_MS) -> tuple[SquatKeyframe, PoseFrame]:
    """Keyframe targets and synthesized pose for a wall-clock time."""
    keyframe = interpolate_keyframes(squat_progress(timestamp_ms, cycle_ms))
    return keyframe, synthesize_reference_pose(keyframe)
