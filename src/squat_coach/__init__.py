"""
Squat Coach: real-time squat repetition analysis.

Consumes body-landmark snapshots one at a time and produces the movement
phase, rep-completion events and a form-quality score with feedback codes.
"""

from .comparison import DetailedFormAnalysis, compare_at_time, compare_to_reference
from .config import AnalyzerConfig, DEFAULT_CONFIG, load_analyzer_config
from .feedback import FeedbackCode, FeedbackItem, Severity, primary_cue
from .form import FormAnalysis, analyze_form
from .landmarks import Landmark, PoseFrame, PoseLandmark
from .phase import Phase, PhaseDetector, PhaseResult
from .reference import (
    SQUAT_KEYFRAMES,
    SquatKeyframe,
    interpolate_keyframes,
    squat_progress,
    synthesize_reference_pose,
)
from .session import SessionSummary, SquatSession, summarize_session
from .validity import is_pose_valid

__version__ = "1.0.0"

__all__ = [
    "AnalyzerConfig",
    "DEFAULT_CONFIG",
    "load_analyzer_config",
    "Landmark",
    "PoseFrame",
    "PoseLandmark",
    "is_pose_valid",
    "Phase",
    "PhaseDetector",
    "PhaseResult",
    "FormAnalysis",
    "analyze_form",
    "FeedbackCode",
    "FeedbackItem",
    "Severity",
    "primary_cue",
    "SquatKeyframe",
    "SQUAT_KEYFRAMES",
    "squat_progress",
    "interpolate_keyframes",
    "synthesize_reference_pose",
    "DetailedFormAnalysis",
    "compare_to_reference",
    "compare_at_time",
    "SessionSummary",
    "SquatSession",
    "summarize_session",
]
