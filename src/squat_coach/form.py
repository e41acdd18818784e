"""
Per-frame squat form scorer.

Scoring starts at 100 and applies a fixed, additive deduction for each
detected issue, in this order:

    insufficient depth (Descending/Bottom only)   -15
    knee cave-in                                   -20
    knee over toe (either side)                    -15
    torso lean beyond the limit                    -15
    hip angle too closed (Bottom only)             -10

Feedback codes are emitted in the same order; severity ranking is left to
the consumer. Adding an issue never raises the score.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .config import (
    DEDUCTION_HIP_ENGAGEMENT,
    DEDUCTION_INSUFFICIENT_DEPTH,
    DEDUCTION_KNEE_CAVE_IN,
    DEDUCTION_KNEES_OVER_TOES,
    DEDUCTION_TORSO_LEAN,
    DEFAULT_CONFIG,
    AnalyzerConfig,
)
from .feedback import FeedbackCode, message_for
from .geometry import (
    angle_at,
    depth_percent,
    forward_offset_check,
    lateral_deviation_check,
    torso_lean_angle,
)
from .landmarks import LA, LH, LK, LS, RA, RH, RK, RS, PoseFrame
from .phase import Phase
from .validity import is_pose_valid


class JointAngles(BaseModel):
    """Bilateral-average joint measurements for one frame."""

    model_config = ConfigDict(frozen=True)

    knee_angle: float = 0.0
    hip_angle: float = 0.0
    torso_angle: float = 0.0
    depth: float = Field(default=0.0, ge=0.0, le=100.0)


class FormAnalysis(BaseModel):
    """Form quality of a single frame."""

    model_config = ConfigDict(frozen=True)

    knee_angle: float = Field(default=0.0, description="Average hip-knee-ankle angle (deg)")
    hip_angle: float = Field(default=0.0, description="Average shoulder-hip-knee angle (deg)")
    torso_angle: float = Field(default=0.0, description="Average torso lean from vertical (deg)")
    depth: float = Field(default=0.0, ge=0.0, le=100.0, description="Hip drop, 100 = hip at knee height")
    knee_alignment: bool = Field(default=True, description="False when the knees cave inward")
    knees_over_toes: bool = False
    overall_score: int = Field(default=0, ge=0, le=100)
    feedback: list[FeedbackCode] = Field(default_factory=list)
    valid: bool = True

    @classmethod
    def not_visible(cls) -> "FormAnalysis":
        """Degraded result for frames that fail the validity gate."""
        return cls(overall_score=0, feedback=[FeedbackCode.BODY_NOT_VISIBLE], valid=False)

    @property
    def messages(self) -> list[str]:
        """Default phrasing for each feedback code, in order."""
        return [message_for(code) for code in self.feedback]


def measure_joint_angles(frame: PoseFrame) -> JointAngles:
    """Knee, hip, torso and depth measurements averaged over both sides."""
    g = frame.get
    knee = (angle_at(g(LH), g(LK), g(LA)) + angle_at(g(RH), g(RK), g(RA))) / 2.0
    hip = (angle_at(g(LS), g(LH), g(LK)) + angle_at(g(RS), g(RH), g(RK))) / 2.0
    torso = (torso_lean_angle(g(LS), g(LH)) + torso_lean_angle(g(RS), g(RH))) / 2.0
    depth = (depth_percent(g(LH), g(LK), g(LA)) + depth_percent(g(RH), g(RK), g(RA))) / 2.0
    return JointAngles(knee_angle=knee, hip_angle=hip, torso_angle=torso, depth=depth)


def knees_caved_in(frame: PoseFrame, ratio: float) -> bool:
    return lateral_deviation_check(frame.get(LK), frame.get(RK), frame.get(LA), frame.get(RA), ratio)


def knees_past_toes(frame: PoseFrame, tolerance: float) -> bool:
    left = forward_offset_check(frame.get(LK), frame.get(LA), tolerance)
    right = forward_offset_check(frame.get(RK), frame.get(RA), tolerance)
    return left or right


def analyze_form(
    frame: PoseFrame,
    phase: Phase,
    config: Optional[AnalyzerConfig] = None,
    valid: Optional[bool] = None,
) -> FormAnalysis:
    """Score one frame's squat form given the current movement phase.

    Args:
        frame: Pose snapshot.
        phase: Current phase from the ``PhaseDetector``.
        config: Threshold set; defaults to the canonical constants.
        valid: Pre-computed validity gate result (computed here if omitted).

    Returns:
        ``FormAnalysis``. Frames that fail the validity gate score 0 with a
        single ``BODY_NOT_VISIBLE`` code.
    """
    cfg = config or DEFAULT_CONFIG
    if valid is None:
        valid = is_pose_valid(frame, min_visibility=cfg.min_visibility)
    if not valid:
        return FormAnalysis.not_visible()

    angles = measure_joint_angles(frame)
    caved_in = knees_caved_in(frame, cfg.knee_cave_ratio)
    over_toes = knees_past_toes(frame, cfg.knee_forward_tolerance)

    score = 100
    feedback: list[FeedbackCode] = []

    if phase in (Phase.DESCENDING, Phase.BOTTOM) and angles.depth < cfg.min_depth_percent:
        feedback.append(FeedbackCode.INSUFFICIENT_DEPTH)
        score -= DEDUCTION_INSUFFICIENT_DEPTH

    if caved_in:
        feedback.append(FeedbackCode.KNEE_CAVE_IN)
        score -= DEDUCTION_KNEE_CAVE_IN

    if over_toes:
        feedback.append(FeedbackCode.KNEES_OVER_TOES)
        score -= DEDUCTION_KNEES_OVER_TOES

    if angles.torso_angle > cfg.max_torso_lean:
        feedback.append(FeedbackCode.TORSO_LEAN)
        score -= DEDUCTION_TORSO_LEAN

    if phase is Phase.BOTTOM and angles.hip_angle < cfg.min_hip_angle_at_bottom:
        feedback.append(FeedbackCode.HIP_ENGAGEMENT)
        score -= DEDUCTION_HIP_ENGAGEMENT

    return FormAnalysis(
        knee_angle=angles.knee_angle,
        hip_angle=angles.hip_angle,
        torso_angle=angles.torso_angle,
        depth=angles.depth,
        knee_alignment=not caved_in,
        knees_over_toes=over_toes,
        overall_score=max(0, min(100, score)),
        feedback=feedback,
    )
