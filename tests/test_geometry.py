"""Tests for the geometry kernel and the validity gate.

Covers:
  - Interior angles, including folding and degenerate input
  - Torso lean from vertical
  - Lateral (knee cave-in) and forward (knee over toe) checks
  - Depth percentage clamping
  - Required-joint visibility gate
"""

import math

import numpy as np
import pytest

from squat_coach.geometry import (
    angle_at,
    depth_percent,
    forward_offset_check,
    horizontal_span,
    lateral_deviation_check,
    mean_x,
    mean_y,
    torso_lean_angle,
)
from squat_coach.landmarks import Landmark, PoseFrame, PoseLandmark
from squat_coach.validity import REQUIRED_JOINTS, invalid_joints, is_pose_valid


def lm(x, y, visibility=1.0):
    return Landmark(x=x, y=y, visibility=visibility)


# ============================================================================
# Test: Joint Angles
# ============================================================================

class TestAngleAt:

    def test_right_angle(self):
        assert angle_at(lm(0, 0), lm(0, 1), lm(1, 1)) == pytest.approx(90.0)

    def test_straight_line(self):
        assert angle_at(lm(0, 0), lm(0, 1), lm(0, 2)) == pytest.approx(180.0)

    def test_symmetric_in_outer_points(self):
        a, b, c = lm(0.2, 0.1), lm(0.5, 0.5), lm(0.9, 0.6)
        assert angle_at(a, b, c) == pytest.approx(angle_at(c, b, a))

    def test_reflex_angle_is_folded(self):
        # Raw arctangent difference here is 270 degrees
        angle = angle_at(lm(-1, -1), lm(0, 0), lm(-1, 1))
        assert angle == pytest.approx(90.0)
        assert 0.0 <= angle <= 180.0

    def test_missing_point_returns_zero(self):
        assert angle_at(None, lm(0, 0), lm(1, 0)) == 0.0

    def test_coincident_points_return_zero(self):
        assert angle_at(lm(0.5, 0.5), lm(0.5, 0.5), lm(1, 0)) == 0.0

    def test_non_finite_returns_zero(self):
        assert angle_at(lm(math.nan, 0), lm(0, 0), lm(1, 0)) == 0.0

    def test_random_angles_stay_in_range(self, rng):
        for _ in range(200):
            pts = [lm(*rng.uniform(-2, 2, size=2)) for _ in range(3)]
            assert 0.0 <= angle_at(*pts) <= 180.0


# ============================================================================
# Test: Torso Lean
# ============================================================================

class TestTorsoLean:

    def test_upright(self):
        assert torso_lean_angle(lm(0.5, 0.3), lm(0.5, 0.6)) == pytest.approx(0.0)

    def test_forty_five_degrees_either_side(self):
        assert torso_lean_angle(lm(0.6, 0.3), lm(0.3, 0.6)) == pytest.approx(45.0)
        assert torso_lean_angle(lm(0.3, 0.3), lm(0.6, 0.6)) == pytest.approx(45.0)

    def test_horizontal(self):
        assert torso_lean_angle(lm(0.2, 0.5), lm(0.6, 0.5)) == pytest.approx(90.0)

    def test_degenerate(self):
        assert torso_lean_angle(None, lm(0, 0)) == 0.0
        assert torso_lean_angle(lm(0.5, 0.5), lm(0.5, 0.5)) == 0.0


# ============================================================================
# Test: Alignment Checks
# ============================================================================

class TestAlignmentChecks:

    def test_horizontal_span(self):
        assert horizontal_span(lm(0.3, 0), lm(0.7, 0)) == pytest.approx(0.4)
        assert horizontal_span(None, lm(0.7, 0)) == 0.0

    def test_knees_caved_in(self):
        assert lateral_deviation_check(lm(0.45, 0.7), lm(0.55, 0.7), lm(0.4, 0.9), lm(0.6, 0.9), 0.9)

    def test_knees_tracking_over_ankles(self):
        assert not lateral_deviation_check(lm(0.4, 0.7), lm(0.6, 0.7), lm(0.4, 0.9), lm(0.6, 0.9), 0.9)

    def test_ratio_boundary(self):
        # 0.17 >= 0.2 * 0.8 but < 0.2 * 0.9
        knees = (lm(0.415, 0.7), lm(0.585, 0.7))
        ankles = (lm(0.4, 0.9), lm(0.6, 0.9))
        assert lateral_deviation_check(*knees, *ankles, 0.9)
        assert not lateral_deviation_check(*knees, *ankles, 0.8)

    def test_zero_reference_span_never_flags(self):
        assert not lateral_deviation_check(lm(0.5, 0.7), lm(0.5, 0.7), lm(0.5, 0.9), lm(0.5, 0.9))

    def test_missing_joint_never_flags(self):
        assert not lateral_deviation_check(None, lm(0.5, 0.7), lm(0.4, 0.9), lm(0.6, 0.9))

    def test_forward_offset(self):
        assert forward_offset_check(lm(0.6, 0.7), lm(0.5, 0.9), 0.05)
        assert not forward_offset_check(lm(0.54, 0.7), lm(0.5, 0.9), 0.05)
        assert not forward_offset_check(lm(0.3, 0.7), lm(0.5, 0.9), 0.05)
        assert not forward_offset_check(None, lm(0.5, 0.9))

    def test_mean_y(self):
        assert mean_y(lm(0, 0.4), lm(0, 0.6)) == pytest.approx(0.5)
        assert mean_y(None, lm(0, 0.6)) == pytest.approx(0.6)
        assert mean_y(None, None) == 0.0

    def test_mean_x(self):
        assert mean_x(lm(0.4, 0), lm(0.6, 0)) == pytest.approx(0.5)
        assert mean_x(lm(0.4, 0), None) == pytest.approx(0.4)
        assert mean_x(None, None) == 0.0


# ============================================================================
# Test: Depth
# ============================================================================

class TestDepthPercent:

    def test_fully_extended_leg_is_zero(self):
        assert depth_percent(lm(0.5, 0.5), lm(0.5, 0.7), lm(0.5, 0.9)) == pytest.approx(0.0)

    def test_hip_at_knee_height_is_hundred(self):
        assert depth_percent(lm(0.3, 0.7), lm(0.5, 0.7), lm(0.5, 0.9)) == pytest.approx(100.0)

    def test_below_knee_is_clamped(self):
        assert depth_percent(lm(0.35, 0.8), lm(0.5, 0.7), lm(0.5, 0.9)) == 100.0

    def test_degenerate_is_zero(self):
        assert depth_percent(lm(0.5, 0.5), lm(0.5, 0.5), lm(0.5, 0.5)) == 0.0
        assert depth_percent(None, lm(0.5, 0.7), lm(0.5, 0.9)) == 0.0

    def test_random_input_stays_in_range(self, rng):
        for _ in range(200):
            pts = [lm(*rng.uniform(-1, 2, size=2)) for _ in range(3)]
            assert 0.0 <= depth_percent(*pts) <= 100.0

    def test_overflowing_leg_length_is_zero(self):
        # each segment is finite, their sum is not
        assert depth_percent(lm(0.0, 0.0), lm(1.2e308, 0.0), lm(0.0, 0.0)) == 0.0

    def test_extreme_magnitudes_stay_in_range(self, rng):
        for _ in range(200):
            pts = [lm(*(rng.uniform(-1, 1, size=2) * 1e308)) for _ in range(3)]
            assert 0.0 <= depth_percent(*pts) <= 100.0


# ============================================================================
# Test: Validity Gate
# ============================================================================

class TestValidityGate:

    def test_full_frame_is_valid(self, standing_frame):
        assert is_pose_valid(standing_frame)
        assert invalid_joints(standing_frame) == []

    def test_none_is_invalid(self):
        assert not is_pose_valid(None)
        assert invalid_joints(None) == list(REQUIRED_JOINTS)

    def test_missing_required_joint(self, make_frame):
        frame = make_frame(drop=[PoseLandmark.LEFT_ANKLE])
        assert not is_pose_valid(frame)
        assert invalid_joints(frame) == [PoseLandmark.LEFT_ANKLE]

    def test_low_visibility_joint(self, make_frame):
        frame = make_frame(low_visibility=[PoseLandmark.RIGHT_SHOULDER])
        assert not is_pose_valid(frame)

    def test_visibility_floor_is_inclusive(self, make_frame):
        assert is_pose_valid(make_frame(visibility=0.7))
        assert not is_pose_valid(make_frame(visibility=0.69))

    def test_custom_floor(self, make_frame):
        frame = make_frame(visibility=0.6)
        assert is_pose_valid(frame, min_visibility=0.5)

    def test_non_required_joint_may_be_missing(self, make_frame):
        assert is_pose_valid(make_frame(drop=[PoseLandmark.NOSE]))

    def test_infinite_coordinate_is_invalid(self):
        arr = np.full((33, 4), 0.5)
        arr[PoseLandmark.LEFT_KNEE.value, 0] = np.inf
        assert not is_pose_valid(PoseFrame.from_array(arr))
