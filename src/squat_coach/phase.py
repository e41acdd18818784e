"""
Phase state machine for squat repetitions.

Consumes one pose snapshot at a time and walks the fixed cycle
Standing → Descending → Bottom → Ascending → Standing. Every transition is
gated twice:

  1. a threshold on the bilateral average knee angle, and
  2. a debounce: the threshold must hold for more than ``debounce_frames``
     consecutive valid frames.

A rep is credited on Ascending → Standing only if the hip travelled at least
``min_descent_distance`` (normalized image units) during the cycle; shallow
cycles return to Standing without incrementing the count.

Hip heights are image y-coordinates, where a larger y is lower on screen.
``highest_hip_height`` therefore holds the smallest y seen while standing and
``lowest_hip_height`` the largest y seen during the descent.
"""

import logging
import time
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .config import DEFAULT_CONFIG, AnalyzerConfig
from .geometry import angle_at, mean_y
from .landmarks import LA, LH, LK, RA, RH, RK, PoseFrame
from .validity import is_pose_valid

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    STANDING = "standing"
    DESCENDING = "descending"
    BOTTOM = "bottom"
    ASCENDING = "ascending"

    def next(self) -> "Phase":
        return _NEXT_PHASE[self]


_NEXT_PHASE: dict[Phase, Phase] = {
    Phase.STANDING: Phase.DESCENDING,
    Phase.DESCENDING: Phase.BOTTOM,
    Phase.BOTTOM: Phase.ASCENDING,
    Phase.ASCENDING: Phase.STANDING,
}


class DetectorState(BaseModel):
    """Mutable per-session state. Owned by exactly one ``PhaseDetector``."""

    phase: Phase = Phase.STANDING
    rep_count: int = Field(default=0, ge=0, description="Credited reps, never decreases")
    highest_hip_height: float = Field(
        default=0.0, description="Smallest hip y of the current cycle (top of the movement)"
    )
    lowest_hip_height: float = Field(
        default=0.0, description="Largest hip y of the current cycle (bottom of the movement)"
    )
    phase_frame_count: int = Field(default=0, description="Valid frames spent in the current phase")
    hold_frame_count: int = Field(
        default=0, description="Consecutive valid frames satisfying the exit threshold"
    )
    rep_start_timestamp: Optional[float] = Field(
        default=None, description="Timestamp (ms) of the Standing → Descending transition"
    )
    has_baseline: bool = Field(default=False, description="Hip extrema seeded from a valid frame")

    @property
    def hip_travel(self) -> float:
        """Vertical hip excursion of the current cycle."""
        return self.lowest_hip_height - self.highest_hip_height


class PhaseResult(BaseModel):
    """Outcome of feeding one frame to the detector."""

    model_config = ConfigDict(frozen=True)

    phase: Phase
    rep_completed: bool = False
    rep_number: Optional[int] = None
    rep_duration_ms: float = 0.0
    transitioned: bool = False
    valid: bool = True
    knee_angle: float = 0.0


def average_knee_angle(frame: PoseFrame) -> float:
    """Mean of left and right hip–knee–ankle angles."""
    left = angle_at(frame.get(LH), frame.get(LK), frame.get(LA))
    right = angle_at(frame.get(RH), frame.get(RK), frame.get(RA))
    return (left + right) / 2.0


def hip_height(frame: PoseFrame) -> float:
    return mean_y(frame.get(LH), frame.get(RH))


class PhaseDetector:
    """Debounced squat phase detector and rep counter.

    Args:
        config: Threshold set; defaults to the canonical constants.

    Usage::

        detector = PhaseDetector()
        for frame, ts in stream:
            result = detector.detect_phase(frame, timestamp_ms=ts)
            if result.rep_completed:
                ...
    """

    def __init__(self, config: Optional[AnalyzerConfig] = None):
        self.config = config or DEFAULT_CONFIG
        self.state = DetectorState()

    def reset(self) -> None:
        """Start a fresh session: Standing, zero reps, no baseline."""
        self.state = DetectorState()

    @property
    def phase(self) -> Phase:
        return self.state.phase

    @property
    def rep_count(self) -> int:
        return self.state.rep_count

    def _exit_condition(self, knee_angle: float) -> bool:
        cfg = self.config
        phase = self.state.phase
        if phase is Phase.STANDING:
            return knee_angle < cfg.standing_knee_threshold
        if phase is Phase.DESCENDING:
            return knee_angle < cfg.bottom_knee_threshold
        if phase is Phase.BOTTOM:
            return knee_angle > cfg.bottom_knee_threshold + cfg.bottom_exit_margin
        return knee_angle > cfg.standing_knee_threshold

    def _ratchet_extrema(self, hip_y: float) -> None:
        state = self.state
        if state.phase is Phase.STANDING:
            state.highest_hip_height = min(state.highest_hip_height, hip_y)
        elif state.phase in (Phase.DESCENDING, Phase.BOTTOM):
            state.lowest_hip_height = max(state.lowest_hip_height, hip_y)

    def detect_phase(
        self,
        frame: PoseFrame,
        timestamp_ms: Optional[float] = None,
        valid: Optional[bool] = None,
    ) -> PhaseResult:
        """Advance the state machine by one frame.

        Args:
            frame: Pose snapshot.
            timestamp_ms: Frame time in milliseconds; defaults to a monotonic clock.
            valid: Pre-computed validity gate result (computed here if omitted).

        Returns:
            ``PhaseResult``. Invalid frames leave the state untouched and
            report ``valid=False``.
        """
        state = self.state
        if valid is None:
            valid = is_pose_valid(frame, min_visibility=self.config.min_visibility)
        if not valid:
            logger.debug("Skipping frame: required joints not visible")
            return PhaseResult(phase=state.phase, valid=False)

        now = time.monotonic() * 1000.0 if timestamp_ms is None else float(timestamp_ms)
        knee_angle = average_knee_angle(frame)
        hip_y = hip_height(frame)

        if not state.has_baseline:
            state.highest_hip_height = hip_y
            state.lowest_hip_height = hip_y
            state.has_baseline = True

        state.phase_frame_count += 1
        self._ratchet_extrema(hip_y)

        if self._exit_condition(knee_angle):
            state.hold_frame_count += 1
        else:
            state.hold_frame_count = 0

        if state.hold_frame_count <= self.config.debounce_frames:
            return PhaseResult(phase=state.phase, knee_angle=knee_angle)

        return self._transition(knee_angle, hip_y, now)

    def _transition(self, knee_angle: float, hip_y: float, now: float) -> PhaseResult:
        state = self.state
        old_phase = state.phase
        new_phase = old_phase.next()
        rep_completed = False
        rep_number = None
        rep_duration = 0.0

        if new_phase is Phase.DESCENDING:
            state.lowest_hip_height = hip_y
            state.rep_start_timestamp = now

        elif new_phase is Phase.STANDING:
            travel = state.hip_travel
            if travel >= self.config.min_descent_distance:
                state.rep_count += 1
                rep_completed = True
                rep_number = state.rep_count
                start = state.rep_start_timestamp if state.rep_start_timestamp is not None else now
                rep_duration = max(0.0, now - start)
                logger.info(
                    "Rep %d completed in %.0f ms (hip travel %.3f)",
                    rep_number, rep_duration, travel,
                )
            else:
                logger.info(
                    "Cycle not credited: hip travel %.3f < %.3f",
                    travel, self.config.min_descent_distance,
                )
            state.highest_hip_height = hip_y
            state.lowest_hip_height = hip_y
            state.rep_start_timestamp = None

        logger.debug(
            "Phase %s -> %s (knee=%.1f, hip_y=%.3f, frames=%d)",
            old_phase.value, new_phase.value, knee_angle, hip_y, state.phase_frame_count,
        )
        state.phase = new_phase
        state.phase_frame_count = 0
        state.hold_frame_count = 0

        return PhaseResult(
            phase=new_phase,
            rep_completed=rep_completed,
            rep_number=rep_number,
            rep_duration_ms=rep_duration,
            transitioned=True,
            knee_angle=knee_angle,
        )
