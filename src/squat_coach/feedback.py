"""
Deterministic feedback codes for the presentation and speech layers.

The analysis core only emits ``FeedbackCode`` values. Phrasing lives in
``DEFAULT_MESSAGES`` (a fallback table callers may replace), and the cue
priorities mirror the spoken-feedback queue's ordering so the host can pick
a single cue per frame without any randomness.
"""

from enum import Enum
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field


class FeedbackCode(str, Enum):
    BODY_NOT_VISIBLE = "body_not_visible"

    # Per-frame form scorer
    INSUFFICIENT_DEPTH = "insufficient_depth"
    KNEE_CAVE_IN = "knee_cave_in"
    KNEES_OVER_TOES = "knees_over_toes"
    TORSO_LEAN = "torso_lean"
    HIP_ENGAGEMENT = "hip_engagement"

    # Reference comparison
    KNEE_NOT_BENT_ENOUGH = "knee_not_bent_enough"
    KNEE_OVER_BENT = "knee_over_bent"
    KNEE_DEPTH_ADJUST = "knee_depth_adjust"
    HIP_HINGE_MORE = "hip_hinge_more"
    HIP_REDUCE_FLEXION = "hip_reduce_flexion"
    HIP_ADJUST = "hip_adjust"
    EXCESSIVE_FORWARD_LEAN = "excessive_forward_lean"
    CHEST_UP_MORE = "chest_up_more"
    LEAN_FORWARD_SLIGHTLY = "lean_forward_slightly"
    DEPTH_BELOW_REFERENCE = "depth_below_reference"
    WEIGHT_FORWARD = "weight_forward"
    WEIGHT_BACKWARD = "weight_backward"


class Severity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class CuePriority(str, Enum):
    CRITICAL = "critical"
    IMPORTANT = "important"
    NORMAL = "normal"


SEVERITY_ORDER: dict[Severity, int] = {
    Severity.CRITICAL: 0,
    Severity.WARNING: 1,
    Severity.INFO: 2,
}

PRIORITY_ORDER: dict[CuePriority, int] = {
    CuePriority.CRITICAL: 0,
    CuePriority.IMPORTANT: 1,
    CuePriority.NORMAL: 2,
}

DEFAULT_MESSAGES: dict[FeedbackCode, str] = {
    FeedbackCode.BODY_NOT_VISIBLE: "Step back so I can see your full body",
    FeedbackCode.INSUFFICIENT_DEPTH: "Go deeper - hips below knees",
    FeedbackCode.KNEE_CAVE_IN: "Push knees outward",
    FeedbackCode.KNEES_OVER_TOES: "Keep knees behind toes",
    FeedbackCode.TORSO_LEAN: "Keep chest up",
    FeedbackCode.HIP_ENGAGEMENT: "Engage hips more",
    FeedbackCode.KNEE_NOT_BENT_ENOUGH: "Squat deeper to match the coach",
    FeedbackCode.KNEE_OVER_BENT: "Don't go as deep",
    FeedbackCode.KNEE_DEPTH_ADJUST: "Adjust knee depth to match coach",
    FeedbackCode.HIP_HINGE_MORE: "Sit back into your hips more",
    FeedbackCode.HIP_REDUCE_FLEXION: "Reduce hip flexion",
    FeedbackCode.HIP_ADJUST: "Adjust hip position",
    FeedbackCode.EXCESSIVE_FORWARD_LEAN: "Keep chest up - excessive forward lean",
    FeedbackCode.CHEST_UP_MORE: "Chest up more",
    FeedbackCode.LEAN_FORWARD_SLIGHTLY: "Lean forward slightly",
    FeedbackCode.DEPTH_BELOW_REFERENCE: "Go deeper - hips must drop below knees",
    FeedbackCode.WEIGHT_FORWARD: "Weight too far forward - center over mid-foot",
    FeedbackCode.WEIGHT_BACKWARD: "Weight too far backward - center over mid-foot",
}

CODE_PRIORITY: dict[FeedbackCode, CuePriority] = {
    FeedbackCode.BODY_NOT_VISIBLE: CuePriority.CRITICAL,
    FeedbackCode.KNEE_CAVE_IN: CuePriority.CRITICAL,
    FeedbackCode.KNEES_OVER_TOES: CuePriority.CRITICAL,
    FeedbackCode.TORSO_LEAN: CuePriority.IMPORTANT,
    FeedbackCode.INSUFFICIENT_DEPTH: CuePriority.IMPORTANT,
    FeedbackCode.EXCESSIVE_FORWARD_LEAN: CuePriority.IMPORTANT,
    FeedbackCode.DEPTH_BELOW_REFERENCE: CuePriority.IMPORTANT,
}


def message_for(code: FeedbackCode, messages: Optional[dict] = None) -> str:
    """Look up the phrasing for *code*, falling back to the default table."""
    if messages and code in messages:
        return messages[code]
    return DEFAULT_MESSAGES[code]


def priority_of(code: FeedbackCode) -> CuePriority:
    return CODE_PRIORITY.get(code, CuePriority.NORMAL)


def primary_cue(codes: Iterable[FeedbackCode]) -> Optional[FeedbackCode]:
    """Pick the single cue to voice: highest priority, earliest on ties."""
    best = None
    for code in codes:
        if best is None or PRIORITY_ORDER[priority_of(code)] < PRIORITY_ORDER[priority_of(best)]:
            best = code
    return best


class FeedbackItem(BaseModel):
    """One diagnostic from the reference comparison, tagged with severity."""

    model_config = ConfigDict(frozen=True)

    code: FeedbackCode
    severity: Severity
    joint: str = Field(description="Joint group the cue refers to: knee, hip, torso, balance")
    expected_angle: Optional[float] = None
    actual_angle: Optional[float] = None

    @property
    def message(self) -> str:
        return DEFAULT_MESSAGES[self.code]


def sort_by_severity(items: Iterable[FeedbackItem]) -> list[FeedbackItem]:
    """Stable sort: critical, then warning, then info."""
    return sorted(items, key=lambda item: SEVERITY_ORDER[item.severity])
