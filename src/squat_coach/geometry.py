"""
Geometry kernel: stateless joint-angle and alignment helpers.

All functions are total over well-formed landmarks. Missing input (``None``)
or degenerate geometry (coincident points, zero-length reference spans,
non-finite coordinates) returns ``0.0`` / ``False`` instead of raising.
Angles use the 2D image-plane (x, y) coordinates.
"""

import math
from typing import Optional

import numpy as np

from .config import GEOMETRY_EPS, KNEE_CAVE_RATIO, KNEE_FORWARD_TOLERANCE
from .landmarks import Landmark


def _finite(*values: float) -> bool:
    return all(math.isfinite(v) for v in values)


def angle_at(
    a: Optional[Landmark],
    b: Optional[Landmark],
    c: Optional[Landmark],
) -> float:
    """Interior angle at vertex *b* formed by rays b→a and b→c.

    Uses the arctangent-difference method and folds reflex results
    (``360 - angle``) so the answer always lies in [0, 180].

    Returns:
        Angle in degrees, or 0.0 if any point is missing or a ray has zero length.
    """
    if a is None or b is None or c is None:
        return 0.0
    if not _finite(a.x, a.y, b.x, b.y, c.x, c.y):
        return 0.0
    if math.hypot(a.x - b.x, a.y - b.y) < GEOMETRY_EPS:
        return 0.0
    if math.hypot(c.x - b.x, c.y - b.y) < GEOMETRY_EPS:
        return 0.0

    radians = np.arctan2(c.y - b.y, c.x - b.x) - np.arctan2(a.y - b.y, a.x - b.x)
    angle = abs(float(np.degrees(radians)))
    if angle > 180.0:
        angle = 360.0 - angle
    return angle


def torso_lean_angle(shoulder: Optional[Landmark], hip: Optional[Landmark]) -> float:
    """Deviation of the shoulder→hip segment from vertical, in degrees (0 = upright)."""
    if shoulder is None or hip is None:
        return 0.0
    dx = hip.x - shoulder.x
    dy = hip.y - shoulder.y
    if not _finite(dx, dy) or math.hypot(dx, dy) < GEOMETRY_EPS:
        return 0.0
    angle_deg = float(np.degrees(np.arctan2(dy, dx)))
    return abs(90.0 - abs(angle_deg))


def horizontal_span(left: Optional[Landmark], right: Optional[Landmark]) -> float:
    """Absolute horizontal distance between a left/right joint pair."""
    if left is None or right is None or not _finite(left.x, right.x):
        return 0.0
    return abs(left.x - right.x)


def lateral_deviation_check(
    left: Optional[Landmark],
    right: Optional[Landmark],
    left_ref: Optional[Landmark],
    right_ref: Optional[Landmark],
    ratio: float = KNEE_CAVE_RATIO,
) -> bool:
    """Flag collapse when the (left, right) span is narrower than ``ratio`` × the reference span.

    Typical use: knee width versus ankle width for knee cave-in (valgus).
    A missing joint or a near-zero reference span never flags.
    """
    if left is None or right is None or left_ref is None or right_ref is None:
        return False
    ref_span = horizontal_span(left_ref, right_ref)
    if ref_span < GEOMETRY_EPS:
        return False
    return horizontal_span(left, right) < ref_span * ratio


def forward_offset_check(
    joint: Optional[Landmark],
    reference: Optional[Landmark],
    tolerance: float = KNEE_FORWARD_TOLERANCE,
) -> bool:
    """Flag when *joint* has travelled past *reference* along +x by more than *tolerance*.

    Used for knee-over-toe: ``forward_offset_check(knee, ankle)``.
    """
    if joint is None or reference is None or not _finite(joint.x, reference.x):
        return False
    return joint.x > reference.x + tolerance


def distance(a: Optional[Landmark], b: Optional[Landmark]) -> float:
    """Image-plane distance between two landmarks (0.0 if either is missing)."""
    if a is None or b is None:
        return 0.0
    d = math.hypot(a.x - b.x, a.y - b.y)
    return d if math.isfinite(d) else 0.0


def mean_y(a: Optional[Landmark], b: Optional[Landmark]) -> float:
    """Average vertical coordinate of a joint pair; uses whichever is present."""
    ys = [lm.y for lm in (a, b) if lm is not None and math.isfinite(lm.y)]
    return sum(ys) / len(ys) if ys else 0.0


def mean_x(a: Optional[Landmark], b: Optional[Landmark]) -> float:
    xs = [lm.x for lm in (a, b) if lm is not None and math.isfinite(lm.x)]
    return sum(xs) / len(xs) if xs else 0.0


def depth_percent(
    hip: Optional[Landmark],
    knee: Optional[Landmark],
    ankle: Optional[Landmark],
) -> float:
    """How far the hip has dropped relative to leg length, scaled to 0..100.

    Leg length is the thigh plus shin segment length. A fully extended leg
    (hip one leg-length above the ankle) scores 0; hip at knee height scores
    100; anything lower is clamped to 100.
    """
    if hip is None or knee is None or ankle is None:
        return 0.0
    leg_length = distance(hip, knee) + distance(knee, ankle)
    if not _finite(leg_length) or leg_length < GEOMETRY_EPS:
        return 0.0

    hip_above_ankle = ankle.y - hip.y
    knee_above_ankle = ankle.y - knee.y
    travel_to_knee = leg_length - knee_above_ankle
    if not _finite(hip_above_ankle, knee_above_ankle, travel_to_knee) or travel_to_knee < GEOMETRY_EPS:
        return 0.0

    depth = (leg_length - hip_above_ankle) / travel_to_knee * 100.0
    # the subtraction can still overflow
    if not math.isfinite(depth):
        return 0.0
    return float(np.clip(depth, 0.0, 100.0))
