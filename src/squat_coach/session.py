"""
Session aggregation and the per-session analysis facade.

``summarize_session`` is a pure reduction over per-rep scores and durations.
``SquatSession`` wires the validity gate, phase detector, form scorer and
(optionally) the reference comparison together for a host that pushes one
pose snapshot at a time.
"""

import logging
import time
from enum import Enum
from typing import Optional, Sequence

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from .comparison import DetailedFormAnalysis, compare_to_reference
from .config import (
    CONSISTENCY_TARGET,
    DEFAULT_CONFIG,
    FORM_GOOD,
    FORM_NEEDS_WORK,
    TEMPO_FAST_MS,
    TEMPO_SLOW_MS,
    AnalyzerConfig,
)
from .feedback import FeedbackCode, primary_cue
from .form import FormAnalysis, analyze_form
from .landmarks import PoseFrame
from .phase import Phase, PhaseDetector, PhaseResult
from .reference import squat_progress
from .validity import is_pose_valid

logger = logging.getLogger(__name__)


# ============================================================================
# Session aggregator
# ============================================================================

class Tempo(str, Enum):
    TOO_FAST = "too_fast"
    OPTIMAL = "optimal"
    TOO_SLOW = "too_slow"


RECOMMENDATIONS = {
    "baseline": "Keep practicing to establish baseline",
    "needs_work": "Focus on form over speed - reduce weight if needed",
    "good": "Good progress - refine depth and alignment",
    "consistency": "Great form - work on consistency across reps",
    "excellent": "Excellent form and consistency - consider adding weight",
}

TEMPO_ADVICE = {
    Tempo.TOO_FAST: "Slow down your descent (2-3 seconds)",
    Tempo.TOO_SLOW: "Speed up slightly while maintaining control",
}


class SessionSummary(BaseModel):
    """Session-level movement quality."""

    model_config = ConfigDict(frozen=True)

    average_form_score: float = Field(default=0.0, description="Mean per-rep score, rounded")
    consistency_score: float = Field(default=0.0, ge=0.0, le=100.0, description="100 - 2 x stddev, rounded")
    tempo: Tempo = Tempo.OPTIMAL
    recommendation: str = RECOMMENDATIONS["baseline"]


def classify_tempo(rep_durations: Sequence[float]) -> Tempo:
    if len(rep_durations) == 0:
        return Tempo.OPTIMAL
    mean_duration = float(np.mean(rep_durations))
    if mean_duration < TEMPO_FAST_MS:
        return Tempo.TOO_FAST
    if mean_duration > TEMPO_SLOW_MS:
        return Tempo.TOO_SLOW
    return Tempo.OPTIMAL


def summarize_session(
    form_scores: Sequence[float],
    rep_durations: Sequence[float] = (),
) -> SessionSummary:
    """Roll per-rep scores and durations up into a ``SessionSummary``.

    Args:
        form_scores: One form score (0-100) per rep.
        rep_durations: One duration (ms) per rep.

    Returns:
        ``SessionSummary``. An empty score list yields zeros, optimal tempo
        and a baseline recommendation.
    """
    if len(form_scores) == 0:
        return SessionSummary()

    scores = np.asarray(form_scores, dtype=float)
    average = float(scores.mean())
    consistency = max(0.0, 100.0 - 2.0 * float(scores.std()))
    tempo = classify_tempo(rep_durations)

    if average < FORM_NEEDS_WORK:
        recommendation = RECOMMENDATIONS["needs_work"]
    elif average < FORM_GOOD:
        recommendation = RECOMMENDATIONS["good"]
    elif consistency < CONSISTENCY_TARGET:
        recommendation = RECOMMENDATIONS["consistency"]
    else:
        recommendation = RECOMMENDATIONS["excellent"]

    if tempo in TEMPO_ADVICE:
        recommendation = f"{recommendation} | {TEMPO_ADVICE[tempo]}"

    return SessionSummary(
        average_form_score=round(average),
        consistency_score=round(consistency),
        tempo=tempo,
        recommendation=recommendation,
    )


# ============================================================================
# Session facade
# ============================================================================

class RepRecord(BaseModel):
    """One credited repetition."""

    model_config = ConfigDict(frozen=True)

    rep_number: int = Field(description="1-indexed rep number")
    duration_ms: float = Field(ge=0.0)
    form_score: float = Field(ge=0.0, le=100.0, description="Mean frame score over the rep")
    feedback: list[FeedbackCode] = Field(
        default_factory=list, description="Codes seen during the rep, first-seen order"
    )


class FrameResult(BaseModel):
    """Everything the host needs to render one frame."""

    model_config = ConfigDict(frozen=True)

    timestamp_ms: float
    phase: Phase
    phase_result: PhaseResult
    form: FormAnalysis
    detailed: Optional[DetailedFormAnalysis] = None
    rep: Optional[RepRecord] = Field(default=None, description="Set on the frame that completes a rep")
    cue: Optional[FeedbackCode] = Field(default=None, description="Highest-priority cue to voice")

    @property
    def valid(self) -> bool:
        return self.form.valid


class SessionReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    summary: SessionSummary
    rep_count: int = 0
    reps: list[RepRecord] = Field(default_factory=list)
    best_rep_score: float = 0.0
    average_frame_score: float = Field(default=0.0, description="Mean score over all valid frames")
    frames_processed: int = 0
    invalid_frames: int = 0


class SquatSession:
    """Stateful per-session analyzer: one instance per user session.

    Args:
        config: Threshold set; defaults to the canonical constants.
        reference_cycle_ms: When set, every valid frame is also compared
            against the reference squat, timed from the session's first frame.
    """

    def __init__(
        self,
        config: Optional[AnalyzerConfig] = None,
        reference_cycle_ms: Optional[float] = None,
    ):
        self.config = config or DEFAULT_CONFIG
        if reference_cycle_ms is not None and reference_cycle_ms <= 0:
            raise ValueError(f"reference_cycle_ms must be positive, got {reference_cycle_ms}.")
        self.reference_cycle_ms = reference_cycle_ms
        self.detector = PhaseDetector(self.config)
        self.reset()

    def reset(self) -> None:
        self.detector.reset()
        self.reps: list[RepRecord] = []
        self._rep_scores: list[float] = []
        self._rep_feedback: list[FeedbackCode] = []
        self._in_rep = False
        self._frame_scores: list[float] = []
        self._frames = 0
        self._invalid = 0
        self._start_ms: Optional[float] = None

    @property
    def rep_count(self) -> int:
        return self.detector.rep_count

    @property
    def phase(self) -> Phase:
        return self.detector.phase

    def process_frame(self, frame: PoseFrame, timestamp_ms: Optional[float] = None) -> FrameResult:
        """Analyze one snapshot.

        Args:
            frame: Pose snapshot from the landmark source.
            timestamp_ms: Frame time in milliseconds; defaults to a monotonic clock.

        Returns:
            ``FrameResult`` for this frame.
        """
        now = time.monotonic() * 1000.0 if timestamp_ms is None else float(timestamp_ms)
        if self._start_ms is None:
            self._start_ms = now
        self._frames += 1

        valid = is_pose_valid(frame, min_visibility=self.config.min_visibility)
        phase_result = self.detector.detect_phase(frame, timestamp_ms=now, valid=valid)
        form = analyze_form(frame, phase_result.phase, config=self.config, valid=valid)

        detailed = None
        if self.reference_cycle_ms is not None:
            progress = squat_progress(now - self._start_ms, self.reference_cycle_ms)
            detailed = compare_to_reference(frame, progress, config=self.config, valid=valid)

        if valid:
            self._frame_scores.append(form.overall_score)
        else:
            self._invalid += 1

        rep = self._track_rep(phase_result, form)

        codes = list(form.feedback)
        if detailed is not None:
            codes.extend(c for c in detailed.codes if c not in codes)

        return FrameResult(
            timestamp_ms=now,
            phase=phase_result.phase,
            phase_result=phase_result,
            form=form,
            detailed=detailed,
            rep=rep,
            cue=primary_cue(codes),
        )

    def _track_rep(self, phase_result: PhaseResult, form: FormAnalysis) -> Optional[RepRecord]:
        if phase_result.transitioned and phase_result.phase is Phase.DESCENDING:
            self._in_rep = True
            self._rep_scores = []
            self._rep_feedback = []

        if self._in_rep and form.valid:
            self._rep_scores.append(form.overall_score)
            for code in form.feedback:
                if code not in self._rep_feedback:
                    self._rep_feedback.append(code)

        if not (phase_result.transitioned and phase_result.phase is Phase.STANDING):
            return None

        self._in_rep = False
        if not phase_result.rep_completed:
            return None

        score = float(np.mean(self._rep_scores)) if self._rep_scores else float(form.overall_score)
        record = RepRecord(
            rep_number=phase_result.rep_number,
            duration_ms=phase_result.rep_duration_ms,
            form_score=score,
            feedback=list(self._rep_feedback),
        )
        self.reps.append(record)
        logger.info(
            "Rep %d recorded: score %.1f, %d cue(s)",
            record.rep_number, record.form_score, len(record.feedback),
        )
        return record

    def summary(self) -> SessionReport:
        """Session-level report over the reps recorded so far."""
        scores = [r.form_score for r in self.reps]
        durations = [r.duration_ms for r in self.reps]
        return SessionReport(
            summary=summarize_session(scores, durations),
            rep_count=self.rep_count,
            reps=list(self.reps),
            best_rep_score=max(scores) if scores else 0.0,
            average_frame_score=float(np.mean(self._frame_scores)) if self._frame_scores else 0.0,
            frames_processed=self._frames,
            invalid_frames=self._invalid,
        )
