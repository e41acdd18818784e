"""
Configuration constants for the squat analysis core.

Centralizes every tunable threshold (angle cutoffs, debounce frame counts,
minimum descent distance, visibility floor, scoring deductions) and loads
named threshold profiles from YAML with environment-variable overrides.
"""

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, model_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Project paths
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_PATH = PROJECT_ROOT / ".env"
load_dotenv(_ENV_PATH)

CONFIG_DIR = PROJECT_ROOT / "config"
DEFAULT_CONFIG_PATH = CONFIG_DIR / "squat_analysis.yaml"

# ---------------------------------------------------------------------------
# Validity gate
# ---------------------------------------------------------------------------
MIN_VISIBILITY: float = 0.7            # every required joint must reach this

# ---------------------------------------------------------------------------
# Phase state machine
# ---------------------------------------------------------------------------
DEBOUNCE_FRAMES: int = 8
STANDING_KNEE_THRESHOLD: float = 170.0  # degrees, average knee angle
BOTTOM_KNEE_THRESHOLD: float = 90.0     # degrees, average knee angle
BOTTOM_EXIT_MARGIN: float = 10.0        # leave Bottom above bottom + margin
MIN_DESCENT_DISTANCE: float = 0.15      # normalized image units of hip travel

# ---------------------------------------------------------------------------
# Geometry kernel
# ---------------------------------------------------------------------------
KNEE_CAVE_RATIO: float = 0.9            # knee span < 90% of ankle span
REFERENCE_KNEE_CAVE_RATIO: float = 0.8  # advanced comparison variant
KNEE_FORWARD_TOLERANCE: float = 0.05
GEOMETRY_EPS: float = 1e-6

# ---------------------------------------------------------------------------
# Form scorer
# ---------------------------------------------------------------------------
MAX_TORSO_LEAN: float = 30.0
MIN_HIP_ANGLE_AT_BOTTOM: float = 30.0
MIN_DEPTH_PERCENT: float = 80.0

DEDUCTION_INSUFFICIENT_DEPTH: int = 15
DEDUCTION_KNEE_CAVE_IN: int = 20
DEDUCTION_KNEES_OVER_TOES: int = 15
DEDUCTION_TORSO_LEAN: int = 15
DEDUCTION_HIP_ENGAGEMENT: int = 10

# ---------------------------------------------------------------------------
# Reference motion model / advanced comparison
# ---------------------------------------------------------------------------
REFERENCE_CYCLE_MS: float = 6000.0
DESCENT_FRACTION: float = 0.50          # share of the cycle spent descending
PAUSE_FRACTION: float = 0.08            # hold at depth
ANGLE_SCORE_SLOPE: float = 2.0          # points lost per degree of difference
TORSO_SCORE_SLOPE: float = 2.5
ANGLE_WARNING_DIFF: float = 10.0
ANGLE_CRITICAL_DIFF: float = 20.0
TORSO_WARNING_DIFF: float = 15.0
TORSO_CRITICAL_LEAN: float = 60.0
DEPTH_TOLERANCE: float = 10.0           # depth points short of the reference
DEPTH_CHECK_WINDOW: tuple[float, float] = (0.4, 0.6)
WEIGHT_SHIFT_TOLERANCE: float = 0.05

# ---------------------------------------------------------------------------
# Session aggregator
# ---------------------------------------------------------------------------
TEMPO_FAST_MS: float = 3000.0
TEMPO_SLOW_MS: float = 7000.0
FORM_NEEDS_WORK: float = 60.0
FORM_GOOD: float = 80.0
CONSISTENCY_TARGET: float = 70.0

# ---------------------------------------------------------------------------
# Environment overrides
# ---------------------------------------------------------------------------
CONFIG_PATH_ENV = "SQUAT_COACH_CONFIG"
PROFILE_ENV = "SQUAT_COACH_PROFILE"
LOG_LEVEL: str = os.environ.get("SQUAT_COACH_LOG_LEVEL", "INFO")


class AnalyzerConfig(BaseModel):
    """Thresholds that parameterize the phase machine and form scorers."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    min_visibility: float = Field(default=MIN_VISIBILITY, ge=0.0, le=1.0)
    debounce_frames: int = Field(default=DEBOUNCE_FRAMES, ge=0)
    standing_knee_threshold: float = Field(default=STANDING_KNEE_THRESHOLD, gt=0.0, le=180.0)
    bottom_knee_threshold: float = Field(default=BOTTOM_KNEE_THRESHOLD, gt=0.0, le=180.0)
    bottom_exit_margin: float = Field(default=BOTTOM_EXIT_MARGIN, ge=0.0)
    min_descent_distance: float = Field(default=MIN_DESCENT_DISTANCE, ge=0.0)
    knee_cave_ratio: float = Field(default=KNEE_CAVE_RATIO, gt=0.0, le=1.0)
    knee_forward_tolerance: float = Field(default=KNEE_FORWARD_TOLERANCE, ge=0.0)
    max_torso_lean: float = Field(default=MAX_TORSO_LEAN, ge=0.0, le=90.0)
    min_hip_angle_at_bottom: float = Field(default=MIN_HIP_ANGLE_AT_BOTTOM, ge=0.0, le=180.0)
    min_depth_percent: float = Field(default=MIN_DEPTH_PERCENT, ge=0.0, le=100.0)
    reference_knee_cave_ratio: float = Field(default=REFERENCE_KNEE_CAVE_RATIO, gt=0.0, le=1.0)
    reference_cycle_ms: float = Field(default=REFERENCE_CYCLE_MS, gt=0.0)

    @model_validator(mode="after")
    def _check_threshold_order(self) -> "AnalyzerConfig":
        if self.bottom_knee_threshold + self.bottom_exit_margin > self.standing_knee_threshold:
            raise ValueError(
                f"bottom_knee_threshold + bottom_exit_margin "
                f"({self.bottom_knee_threshold} + {self.bottom_exit_margin}) must not "
                f"exceed standing_knee_threshold ({self.standing_knee_threshold})."
            )
        return self


DEFAULT_CONFIG = AnalyzerConfig()


# ---------------------------------------------------------------------------
# YAML profiles
# ---------------------------------------------------------------------------

def _load_yaml(path: Path) -> dict:
    """Load the threshold YAML; an absent file yields an empty dict."""
    if not path.exists():
        logger.info("No threshold file at %s, using built-in defaults.", path)
        return {}
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


_YAML_CACHE: dict[Path, dict] = {}


def _get_yaml(path: Path) -> dict:
    """Lazy-load and cache the YAML config per path."""
    path = path.resolve()
    if path not in _YAML_CACHE:
        _YAML_CACHE[path] = _load_yaml(path)
    return _YAML_CACHE[path]


def available_profiles(path: Optional[Path] = None) -> list[str]:
    """Return the profile names defined in the threshold file."""
    cfg = _get_yaml(Path(path) if path else _resolve_config_path())
    return sorted((cfg.get("profiles") or {}).keys())


def _resolve_config_path() -> Path:
    env_path = os.environ.get(CONFIG_PATH_ENV)
    return Path(env_path) if env_path else DEFAULT_CONFIG_PATH


def load_analyzer_config(
    profile: Optional[str] = None,
    path: Optional[Path] = None,
) -> AnalyzerConfig:
    """Build an ``AnalyzerConfig`` from the YAML defaults and an optional profile.

    Args:
        profile: Profile name under ``profiles:``. Falls back to the
            ``SQUAT_COACH_PROFILE`` environment variable, then to defaults only.
        path: YAML file. Falls back to ``SQUAT_COACH_CONFIG``, then to
            ``config/squat_analysis.yaml``.

    Returns:
        Validated, frozen ``AnalyzerConfig``.

    Raises:
        ValueError: If the profile does not exist or a value is out of range.
    """
    config_path = Path(path) if path else _resolve_config_path()
    cfg = _get_yaml(config_path)
    profile = profile or os.environ.get(PROFILE_ENV) or None

    values = dict(cfg.get("defaults") or {})
    if profile:
        profiles = cfg.get("profiles") or {}
        if profile not in profiles:
            raise ValueError(
                f"Unknown threshold profile '{profile}'. "
                f"Valid profiles: {sorted(profiles)}"
            )
        values.update(profiles[profile] or {})
        logger.info("Using threshold profile '%s' from %s", profile, config_path)

    return AnalyzerConfig(**values)
