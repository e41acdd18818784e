"""
Pose validity gate.

Decides whether a snapshot is trustworthy enough to analyze: every required
joint must be present with visibility at or above the floor. Callers
short-circuit to a degraded result when the gate fails.
"""

import math
from typing import Iterable, Optional

from .config import MIN_VISIBILITY
from .landmarks import LA, LH, LK, LS, RA, RH, RK, RS, PoseFrame, PoseLandmark

# Joints the squat analysis cannot do without
REQUIRED_JOINTS: tuple[PoseLandmark, ...] = (LS, RS, LH, RH, LK, RK, LA, RA)


def invalid_joints(
    frame: Optional[PoseFrame],
    required: Iterable[PoseLandmark] = REQUIRED_JOINTS,
    min_visibility: float = MIN_VISIBILITY,
) -> list[PoseLandmark]:
    """Return the required joints that are absent, non-finite or under-visible."""
    required = list(required)
    if frame is None:
        return required

    bad = []
    for joint in required:
        lm = frame.get(joint)
        if lm is None:
            bad.append(joint)
        elif not all(math.isfinite(v) for v in (lm.x, lm.y, lm.z, lm.visibility)):
            bad.append(joint)
        elif lm.visibility < min_visibility:
            bad.append(joint)
    return bad


def is_pose_valid(
    frame: Optional[PoseFrame],
    required: Iterable[PoseLandmark] = REQUIRED_JOINTS,
    min_visibility: float = MIN_VISIBILITY,
) -> bool:
    """True iff every required joint is present with ``visibility >= min_visibility``."""
    return not invalid_joints(frame, required, min_visibility)
