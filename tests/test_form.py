"""Tests for the per-frame form scorer and feedback codes.

Covers:
  - Individual deductions and their phase gating
  - Deduction order and combination
  - Degraded result for invalid frames
  - Score and depth range under adversarial input
  - Cue priority selection
"""

import numpy as np
import pytest

from squat_coach.config import AnalyzerConfig
from squat_coach.feedback import (
    CuePriority,
    FeedbackCode,
    FeedbackItem,
    Severity,
    message_for,
    primary_cue,
    priority_of,
    sort_by_severity,
)
from squat_coach.form import FormAnalysis, analyze_form, measure_joint_angles
from squat_coach.landmarks import PoseFrame, PoseLandmark
from squat_coach.phase import Phase
from squat_coach.session import SquatSession


# ============================================================================
# Test: Measurements
# ============================================================================

class TestMeasurements:

    def test_upright_torso_hip_matches_knee(self, make_frame):
        angles = measure_joint_angles(make_frame(knee_angle=120.0))
        assert angles.knee_angle == pytest.approx(120.0)
        assert angles.hip_angle == pytest.approx(120.0)
        assert angles.torso_angle == pytest.approx(0.0, abs=1e-6)

    def test_torso_lean_closes_hip(self, make_frame):
        angles = measure_joint_angles(make_frame(knee_angle=120.0, torso_lean=40.0))
        assert angles.torso_angle == pytest.approx(40.0)
        assert angles.hip_angle == pytest.approx(80.0)

    @pytest.mark.parametrize("knee, depth", [(175.0, 0.38), (120.0, 50.0), (95.0, 91.28), (90.0, 100.0)])
    def test_depth(self, make_frame, knee, depth):
        assert measure_joint_angles(make_frame(knee_angle=knee)).depth == pytest.approx(depth, abs=0.01)


# ============================================================================
# Test: Deductions
# ============================================================================

class TestDeductions:

    def test_clean_standing_frame(self, standing_frame):
        result = analyze_form(standing_frame, Phase.STANDING)
        assert result.valid
        assert result.overall_score == 100
        assert result.feedback == []
        assert result.knee_alignment
        assert not result.knees_over_toes

    def test_good_bottom_position(self, make_frame):
        result = analyze_form(make_frame(knee_angle=95.0), Phase.BOTTOM)
        assert result.overall_score == 100
        assert result.feedback == []

    def test_insufficient_depth_while_descending(self, make_frame):
        result = analyze_form(make_frame(knee_angle=120.0), Phase.DESCENDING)
        assert result.feedback == [FeedbackCode.INSUFFICIENT_DEPTH]
        assert result.overall_score == 85

    @pytest.mark.parametrize("phase", [Phase.STANDING, Phase.ASCENDING])
    def test_depth_not_judged_outside_descent(self, make_frame, phase):
        result = analyze_form(make_frame(knee_angle=120.0), phase)
        assert FeedbackCode.INSUFFICIENT_DEPTH not in result.feedback

    def test_knee_cave_in(self, make_frame):
        result = analyze_form(make_frame(knee_angle=175.0, knee_width=0.12), Phase.STANDING)
        assert result.feedback == [FeedbackCode.KNEE_CAVE_IN]
        assert result.overall_score == 80
        assert not result.knee_alignment

    def test_knees_over_toes(self, make_frame):
        result = analyze_form(make_frame(knee_angle=175.0, knee_forward=0.1), Phase.STANDING)
        assert result.feedback == [FeedbackCode.KNEES_OVER_TOES]
        assert result.overall_score == 85
        assert result.knees_over_toes

    def test_torso_lean(self, make_frame):
        result = analyze_form(make_frame(knee_angle=175.0, torso_lean=40.0), Phase.STANDING)
        assert result.feedback == [FeedbackCode.TORSO_LEAN]
        assert result.overall_score == 85

    def test_torso_at_limit_is_fine(self, make_frame):
        result = analyze_form(make_frame(knee_angle=175.0, torso_lean=29.0), Phase.STANDING)
        assert result.feedback == []

    def test_hip_engagement_only_at_bottom(self, make_frame):
        frame = make_frame(knee_angle=95.0, torso_lean=70.0)
        bottom = analyze_form(frame, Phase.BOTTOM)
        assert bottom.feedback == [FeedbackCode.TORSO_LEAN, FeedbackCode.HIP_ENGAGEMENT]
        assert bottom.overall_score == 75

        ascending = analyze_form(frame, Phase.ASCENDING)
        assert ascending.feedback == [FeedbackCode.TORSO_LEAN]

    def test_combined_issues_in_order(self, make_frame):
        frame = make_frame(knee_angle=120.0, knee_width=0.12, knee_forward=0.1, torso_lean=60.0)
        result = analyze_form(frame, Phase.BOTTOM)
        assert result.feedback == [
            FeedbackCode.INSUFFICIENT_DEPTH,
            FeedbackCode.KNEE_CAVE_IN,
            FeedbackCode.KNEES_OVER_TOES,
            FeedbackCode.TORSO_LEAN,
        ]
        assert result.overall_score == 35

    def test_config_thresholds_are_used(self, make_frame):
        lenient = AnalyzerConfig(max_torso_lean=45.0, min_depth_percent=40.0)
        result = analyze_form(make_frame(knee_angle=120.0, torso_lean=40.0), Phase.DESCENDING, config=lenient)
        assert result.feedback == []


# ============================================================================
# Test: Degraded Input
# ============================================================================

class TestInvalidFrames:

    def test_low_visibility(self, make_frame):
        result = analyze_form(make_frame(visibility=0.5), Phase.BOTTOM)
        assert not result.valid
        assert result.overall_score == 0
        assert result.feedback == [FeedbackCode.BODY_NOT_VISIBLE]

    def test_precomputed_validity_is_respected(self, standing_frame):
        result = analyze_form(standing_frame, Phase.STANDING, valid=False)
        assert not result.valid

    def test_empty_frame(self):
        result = analyze_form(PoseFrame(), Phase.STANDING)
        assert result.feedback == [FeedbackCode.BODY_NOT_VISIBLE]

    def test_adversarial_input_stays_in_range(self, rng):
        for _ in range(300):
            arr = rng.uniform(-5, 5, size=(33, 4))
            arr[:, 3] = 1.0
            frame = PoseFrame.from_array(arr)
            for phase in Phase:
                result = analyze_form(frame, phase)
                assert 0 <= result.overall_score <= 100
                assert 0.0 <= result.depth <= 100.0

    def test_degenerate_geometry_stays_in_range(self):
        arr = np.zeros((33, 4))
        arr[:, 3] = 1.0
        result = analyze_form(PoseFrame.from_array(arr), Phase.BOTTOM)
        assert 0 <= result.overall_score <= 100
        assert result.depth == 0.0

    def test_huge_knee_offset_does_not_raise(self):
        arr = np.zeros((33, 4))
        arr[:, 3] = 1.0
        arr[[PoseLandmark.LEFT_KNEE.value, PoseLandmark.RIGHT_KNEE.value], 0] = 1.2e308
        arr[[PoseLandmark.LEFT_SHOULDER.value, PoseLandmark.RIGHT_SHOULDER.value], 1] = -0.3
        frame = PoseFrame.from_array(arr)

        result = analyze_form(frame, Phase.BOTTOM)
        assert result.valid
        assert result.depth == 0.0
        assert 0 <= result.overall_score <= 100

        step = SquatSession(reference_cycle_ms=6000.0).process_frame(frame, 0.0)
        assert step.form.depth == 0.0
        assert 0 <= step.detailed.overall_score <= 100

    def test_extreme_magnitudes_stay_in_range(self, rng):
        session = SquatSession(reference_cycle_ms=6000.0)
        for i in range(100):
            arr = rng.uniform(-1, 1, size=(33, 4)) * 1e308
            arr[:, 3] = 1.0
            frame = PoseFrame.from_array(arr)
            for phase in Phase:
                result = analyze_form(frame, phase)
                assert 0 <= result.overall_score <= 100
                assert 0.0 <= result.depth <= 100.0
            step = session.process_frame(frame, i * 33.0)
            assert 0 <= step.form.overall_score <= 100
            assert 0 <= step.detailed.overall_score <= 100


# ============================================================================
# Test: Feedback Codes
# ============================================================================

class TestFeedbackCodes:

    def test_every_code_has_a_message(self):
        for code in FeedbackCode:
            assert message_for(code)

    def test_message_override(self):
        custom = {FeedbackCode.TORSO_LEAN: "Proud chest"}
        assert message_for(FeedbackCode.TORSO_LEAN, custom) == "Proud chest"
        assert message_for(FeedbackCode.KNEE_CAVE_IN, custom) == "Push knees outward"

    def test_priorities(self):
        assert priority_of(FeedbackCode.KNEE_CAVE_IN) is CuePriority.CRITICAL
        assert priority_of(FeedbackCode.INSUFFICIENT_DEPTH) is CuePriority.IMPORTANT
        assert priority_of(FeedbackCode.HIP_ENGAGEMENT) is CuePriority.NORMAL

    def test_primary_cue_prefers_critical(self):
        codes = [FeedbackCode.INSUFFICIENT_DEPTH, FeedbackCode.TORSO_LEAN, FeedbackCode.KNEES_OVER_TOES]
        assert primary_cue(codes) is FeedbackCode.KNEES_OVER_TOES

    def test_primary_cue_ties_keep_first(self):
        codes = [FeedbackCode.TORSO_LEAN, FeedbackCode.INSUFFICIENT_DEPTH]
        assert primary_cue(codes) is FeedbackCode.TORSO_LEAN

    def test_primary_cue_empty(self):
        assert primary_cue([]) is None

    def test_sort_by_severity_is_stable(self):
        items = [
            FeedbackItem(code=FeedbackCode.HIP_ADJUST, severity=Severity.WARNING, joint="hip"),
            FeedbackItem(code=FeedbackCode.KNEE_OVER_BENT, severity=Severity.CRITICAL, joint="knee"),
            FeedbackItem(code=FeedbackCode.WEIGHT_FORWARD, severity=Severity.WARNING, joint="balance"),
            FeedbackItem(code=FeedbackCode.KNEE_CAVE_IN, severity=Severity.CRITICAL, joint="knee"),
        ]
        assert [i.code for i in sort_by_severity(items)] == [
            FeedbackCode.KNEE_OVER_BENT,
            FeedbackCode.KNEE_CAVE_IN,
            FeedbackCode.HIP_ADJUST,
            FeedbackCode.WEIGHT_FORWARD,
        ]

    def test_form_messages_follow_code_order(self):
        result = FormAnalysis.not_visible()
        assert result.messages == [message_for(FeedbackCode.BODY_NOT_VISIBLE)]
