"""
Advanced form comparison against the reference motion model.

Where ``analyze_form`` applies absolute rules, ``compare_to_reference``
measures how far the user's joint angles are from the ideal squat at the same
point of the cycle, and reports per-joint sub-scores plus severity-tagged
feedback.
"""

import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .config import (
    ANGLE_CRITICAL_DIFF,
    ANGLE_SCORE_SLOPE,
    ANGLE_WARNING_DIFF,
    DEFAULT_CONFIG,
    DEPTH_CHECK_WINDOW,
    DEPTH_TOLERANCE,
    TORSO_CRITICAL_LEAN,
    TORSO_SCORE_SLOPE,
    TORSO_WARNING_DIFF,
    WEIGHT_SHIFT_TOLERANCE,
    AnalyzerConfig,
)
from .feedback import FeedbackCode, FeedbackItem, Severity, sort_by_severity
from .form import knees_caved_in, knees_past_toes, measure_joint_angles
from .geometry import angle_at, mean_x
from .landmarks import LA, LH, LK, RA, RH, RK, PoseFrame, PoseLandmark
from .phase import Phase
from .reference import (
    REFERENCE_FACING,
    SquatKeyframe,
    interpolate_keyframes,
    reference_phase,
    squat_progress,
    synthesize_reference_pose,
)
from .validity import is_pose_valid

logger = logging.getLogger(__name__)

# Points removed per issue
DEDUCTION_KNEE_CRITICAL: int = 15
DEDUCTION_KNEE_WARNING: int = 8
DEDUCTION_HIP_CRITICAL: int = 12
DEDUCTION_HIP_WARNING: int = 6
DEDUCTION_TORSO_CRITICAL: int = 15
DEDUCTION_TORSO_WARNING: int = 8
DEDUCTION_DEPTH: int = 20
DEDUCTION_KNEE_VALGUS: int = 20
DEDUCTION_KNEES_OVER_TOES: int = 10
DEDUCTION_WEIGHT_SHIFT: int = 8


class Alignment(BaseModel):
    model_config = ConfigDict(frozen=True)

    knee_valgus: bool = False
    knees_over_toes: bool = False
    spine_neutral: bool = True
    weight_distribution: str = Field(default="balanced", description="balanced, forward or backward")


class DetailedFormAnalysis(BaseModel):
    """Per-joint comparison of one frame against the reference pose."""

    model_config = ConfigDict(frozen=True)

    overall_score: int = Field(default=0, ge=0, le=100)
    knee_score: float = Field(default=0.0, ge=0.0, le=100.0)
    hip_score: float = Field(default=0.0, ge=0.0, le=100.0)
    torso_score: float = Field(default=0.0, ge=0.0, le=100.0)
    ankle_score: float = Field(default=0.0, ge=0.0, le=100.0)
    depth_score: float = Field(default=0.0, ge=0.0, le=100.0)
    alignment: Alignment = Field(default_factory=Alignment)
    phase: Phase = Field(default=Phase.STANDING, description="Reference phase at this progress")
    progress: float = 0.0
    feedback: list[FeedbackItem] = Field(default_factory=list)
    valid: bool = True

    @classmethod
    def not_visible(cls, progress: float = 0.0) -> "DetailedFormAnalysis":
        item = FeedbackItem(code=FeedbackCode.BODY_NOT_VISIBLE, severity=Severity.CRITICAL, joint="body")
        return cls(
            overall_score=0,
            phase=reference_phase(progress),
            progress=progress,
            feedback=[item],
            valid=False,
        )

    @property
    def codes(self) -> list[FeedbackCode]:
        return [item.code for item in self.feedback]


def _sub_score(diff: float, slope: float) -> float:
    return max(0.0, min(100.0, 100.0 - slope * diff))


def _average_ankle_angle(frame: PoseFrame) -> Optional[float]:
    """Knee-ankle-toe angle averaged over the sides where the foot is tracked."""
    values = []
    for knee, ankle, toe in (
        (LK, LA, PoseLandmark.LEFT_FOOT_INDEX),
        (RK, RA, PoseLandmark.RIGHT_FOOT_INDEX),
    ):
        lm_knee, lm_ankle, lm_toe = frame.get(knee), frame.get(ankle), frame.get(toe)
        if lm_knee is None or lm_ankle is None or lm_toe is None:
            continue
        values.append(angle_at(lm_knee, lm_ankle, lm_toe))
    return sum(values) / len(values) if values else None


def _hip_over_ankle(frame: PoseFrame) -> float:
    """Horizontal hip offset from the ankles (image x)."""
    return mean_x(frame.get(LH), frame.get(RH)) - mean_x(frame.get(LA), frame.get(RA))


def compare_to_reference(
    frame: PoseFrame,
    progress: float,
    config: Optional[AnalyzerConfig] = None,
    valid: Optional[bool] = None,
) -> DetailedFormAnalysis:
    """Compare one frame against the ideal squat at *progress* (0..1).

    Args:
        frame: User pose snapshot.
        progress: Point of the reference cycle, e.g. from ``squat_progress``.
        config: Threshold set; defaults to the canonical constants.
        valid: Pre-computed validity gate result (computed here if omitted).

    Returns:
        ``DetailedFormAnalysis`` with feedback sorted critical → warning → info.
    """
    cfg = config or DEFAULT_CONFIG
    if valid is None:
        valid = is_pose_valid(frame, min_visibility=cfg.min_visibility)
    if not valid:
        return DetailedFormAnalysis.not_visible(progress)

    target: SquatKeyframe = interpolate_keyframes(progress)
    reference = synthesize_reference_pose(target)
    user = measure_joint_angles(frame)
    ref = measure_joint_angles(reference)

    score = 100
    feedback: list[FeedbackItem] = []

    # Knee
    knee_diff = abs(user.knee_angle - target.knee_angle)
    if knee_diff > ANGLE_CRITICAL_DIFF:
        code = (
            FeedbackCode.KNEE_NOT_BENT_ENOUGH
            if user.knee_angle > target.knee_angle
            else FeedbackCode.KNEE_OVER_BENT
        )
        feedback.append(FeedbackItem(
            code=code, severity=Severity.CRITICAL, joint="knee",
            expected_angle=target.knee_angle, actual_angle=user.knee_angle,
        ))
        score -= DEDUCTION_KNEE_CRITICAL
    elif knee_diff > ANGLE_WARNING_DIFF:
        feedback.append(FeedbackItem(
            code=FeedbackCode.KNEE_DEPTH_ADJUST, severity=Severity.WARNING, joint="knee",
            expected_angle=target.knee_angle, actual_angle=user.knee_angle,
        ))
        score -= DEDUCTION_KNEE_WARNING

    # Hip
    hip_diff = abs(user.hip_angle - target.hip_angle)
    if hip_diff > ANGLE_CRITICAL_DIFF:
        code = (
            FeedbackCode.HIP_HINGE_MORE
            if user.hip_angle > target.hip_angle
            else FeedbackCode.HIP_REDUCE_FLEXION
        )
        feedback.append(FeedbackItem(
            code=code, severity=Severity.CRITICAL, joint="hip",
            expected_angle=target.hip_angle, actual_angle=user.hip_angle,
        ))
        score -= DEDUCTION_HIP_CRITICAL
    elif hip_diff > ANGLE_WARNING_DIFF:
        feedback.append(FeedbackItem(
            code=FeedbackCode.HIP_ADJUST, severity=Severity.WARNING, joint="hip",
            expected_angle=target.hip_angle, actual_angle=user.hip_angle,
        ))
        score -= DEDUCTION_HIP_WARNING

    # Torso
    torso_diff = abs(user.torso_angle - target.torso_angle)
    if user.torso_angle > TORSO_CRITICAL_LEAN:
        feedback.append(FeedbackItem(
            code=FeedbackCode.EXCESSIVE_FORWARD_LEAN, severity=Severity.CRITICAL, joint="torso",
            expected_angle=target.torso_angle, actual_angle=user.torso_angle,
        ))
        score -= DEDUCTION_TORSO_CRITICAL
    elif torso_diff > TORSO_WARNING_DIFF:
        code = (
            FeedbackCode.CHEST_UP_MORE
            if user.torso_angle > target.torso_angle
            else FeedbackCode.LEAN_FORWARD_SLIGHTLY
        )
        feedback.append(FeedbackItem(
            code=code, severity=Severity.WARNING, joint="torso",
            expected_angle=target.torso_angle, actual_angle=user.torso_angle,
        ))
        score -= DEDUCTION_TORSO_WARNING

    # Depth, judged only around the bottom of the cycle
    depth_deficit = max(0.0, ref.depth - user.depth)
    low, high = DEPTH_CHECK_WINDOW
    if low < progress < high and user.depth < ref.depth - DEPTH_TOLERANCE:
        feedback.append(FeedbackItem(
            code=FeedbackCode.DEPTH_BELOW_REFERENCE, severity=Severity.CRITICAL, joint="hip",
        ))
        score -= DEDUCTION_DEPTH

    # Alignment
    valgus = knees_caved_in(frame, cfg.reference_knee_cave_ratio)
    if valgus:
        feedback.append(FeedbackItem(
            code=FeedbackCode.KNEE_CAVE_IN, severity=Severity.CRITICAL, joint="knee",
        ))
        score -= DEDUCTION_KNEE_VALGUS

    over_toes = knees_past_toes(frame, cfg.knee_forward_tolerance)
    if over_toes:
        feedback.append(FeedbackItem(
            code=FeedbackCode.KNEES_OVER_TOES, severity=Severity.WARNING, joint="knee",
        ))
        score -= DEDUCTION_KNEES_OVER_TOES

    # Forward is the direction the reference figure faces
    shift = (_hip_over_ankle(frame) - _hip_over_ankle(reference)) * REFERENCE_FACING
    weight = "balanced"
    if abs(shift) >= WEIGHT_SHIFT_TOLERANCE:
        weight = "forward" if shift > 0 else "backward"
        feedback.append(FeedbackItem(
            code=FeedbackCode.WEIGHT_FORWARD if shift > 0 else FeedbackCode.WEIGHT_BACKWARD,
            severity=Severity.WARNING,
            joint="balance",
        ))
        score -= DEDUCTION_WEIGHT_SHIFT

    user_ankle = _average_ankle_angle(frame)
    ref_ankle = _average_ankle_angle(reference)
    if user_ankle is None or ref_ankle is None:
        ankle_score = 100.0
    else:
        ankle_score = _sub_score(abs(user_ankle - ref_ankle), ANGLE_SCORE_SLOPE)

    overall = int(round(max(0, min(100, score))))
    logger.debug(
        "Reference comparison at %.2f: score=%d knee_diff=%.1f hip_diff=%.1f torso_diff=%.1f",
        progress, overall, knee_diff, hip_diff, torso_diff,
    )

    return DetailedFormAnalysis(
        overall_score=overall,
        knee_score=_sub_score(knee_diff, ANGLE_SCORE_SLOPE),
        hip_score=_sub_score(hip_diff, ANGLE_SCORE_SLOPE),
        torso_score=_sub_score(torso_diff, TORSO_SCORE_SLOPE),
        ankle_score=ankle_score,
        depth_score=max(0.0, 100.0 - depth_deficit),
        alignment=Alignment(
            knee_valgus=valgus,
            knees_over_toes=over_toes,
            spine_neutral=user.torso_angle <= TORSO_CRITICAL_LEAN and torso_diff <= TORSO_WARNING_DIFF,
            weight_distribution=weight,
        ),
        phase=reference_phase(progress),
        progress=progress,
        feedback=sort_by_severity(feedback),
    )


def compare_at_time(
    frame: PoseFrame,
    timestamp_ms: float,
    cycle_ms: Optional[float] = None,
    config: Optional[AnalyzerConfig] = None,
    valid: Optional[bool] = None,
) -> DetailedFormAnalysis:
    """``compare_to_reference`` at the reference progress for a wall-clock time."""
    cfg = config or DEFAULT_CONFIG
    progress = squat_progress(timestamp_ms, cycle_ms or cfg.reference_cycle_ms)
    return compare_to_reference(frame, progress, config=cfg, valid=valid)
