"""
Landmark schema for pose snapshots.

A ``PoseFrame`` maps the closed set of 33 MediaPipe body joints to
``Landmark`` values. Joints the pose source could not place are simply absent
from the mapping; analysis code asks for them by enum member, never by raw
string or integer offset.
"""

import logging
from enum import IntEnum
from typing import Iterable, Mapping, Optional

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

NUM_LANDMARKS: int = 33


class PoseLandmark(IntEnum):
    """The 33 MediaPipe pose joints, valued by their MediaPipe index."""

    NOSE = 0
    LEFT_EYE_INNER = 1
    LEFT_EYE = 2
    LEFT_EYE_OUTER = 3
    RIGHT_EYE_INNER = 4
    RIGHT_EYE = 5
    RIGHT_EYE_OUTER = 6
    LEFT_EAR = 7
    RIGHT_EAR = 8
    MOUTH_LEFT = 9
    MOUTH_RIGHT = 10
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_PINKY = 17
    RIGHT_PINKY = 18
    LEFT_INDEX = 19
    RIGHT_INDEX = 20
    LEFT_THUMB = 21
    RIGHT_THUMB = 22
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32

    @classmethod
    def from_name(cls, name: str) -> Optional["PoseLandmark"]:
        """Case-insensitive lookup; returns None for unknown names."""
        return cls.__members__.get(name.strip().upper())


# Short aliases for the joints the squat analysis reads
LS, RS = PoseLandmark.LEFT_SHOULDER, PoseLandmark.RIGHT_SHOULDER
LH, RH = PoseLandmark.LEFT_HIP, PoseLandmark.RIGHT_HIP
LK, RK = PoseLandmark.LEFT_KNEE, PoseLandmark.RIGHT_KNEE
LA, RA = PoseLandmark.LEFT_ANKLE, PoseLandmark.RIGHT_ANKLE


class Landmark(BaseModel):
    """A single joint estimate in normalized image space."""

    model_config = ConfigDict(frozen=True)

    x: float = Field(description="Horizontal position, 0..1 across the image")
    y: float = Field(description="Vertical position, 0..1 down the image (larger = lower)")
    z: float = Field(default=0.0, description="Relative depth from the camera plane")
    visibility: float = Field(
        default=1.0, ge=0.0, le=1.0,
        description="Detector confidence that the joint is visible",
    )


class PoseFrame(BaseModel):
    """All landmarks for one instant in time."""

    model_config = ConfigDict(frozen=True)

    landmarks: dict[PoseLandmark, Landmark] = Field(default_factory=dict)

    def get(self, joint: PoseLandmark) -> Optional[Landmark]:
        return self.landmarks.get(joint)

    def __getitem__(self, joint: PoseLandmark) -> Landmark:
        return self.landmarks[joint]

    def __contains__(self, joint: object) -> bool:
        return joint in self.landmarks

    def __len__(self) -> int:
        return len(self.landmarks)

    def missing(self, joints: Iterable[PoseLandmark]) -> list[PoseLandmark]:
        """Return the joints from *joints* absent in this frame."""
        return [j for j in joints if j not in self.landmarks]

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    @classmethod
    def from_array(cls, arr) -> "PoseFrame":
        """Build a frame from a (33, 4) or (33, 3) array of x, y, z[, visibility].

        Rows containing NaN are treated as absent joints. Without a
        visibility column every joint is assumed fully visible.

        Raises:
            ValueError: If the shape is invalid.
        """
        a = np.asarray(arr, dtype=np.float64)
        if a.ndim != 2 or a.shape[0] != NUM_LANDMARKS:
            raise ValueError(
                f"Expected {NUM_LANDMARKS} landmarks per frame, got shape {a.shape}."
            )
        if a.shape[1] not in (3, 4):
            raise ValueError(
                f"Expected 3 or 4 values per landmark (x, y, z[, visibility]), "
                f"got {a.shape[1]}."
            )

        landmarks = {}
        for joint in PoseLandmark:
            row = a[joint.value]
            if np.isnan(row).any():
                continue
            vis = float(np.clip(row[3], 0.0, 1.0)) if a.shape[1] == 4 else 1.0
            landmarks[joint] = Landmark(
                x=float(row[0]), y=float(row[1]), z=float(row[2]), visibility=vis,
            )
        return cls(landmarks=landmarks)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, object]) -> "PoseFrame":
        """Build a frame from a name-keyed mapping (``"LEFT_HIP"``, ``"left_hip"``).

        Values may be ``Landmark`` instances or dicts with x/y/z/visibility.
        Unknown joint names are ignored.
        """
        landmarks = {}
        for name, value in mapping.items():
            joint = PoseLandmark.from_name(str(name))
            if joint is None:
                logger.debug("Ignoring unknown landmark name '%s'", name)
                continue
            if value is None:
                continue
            if isinstance(value, Landmark):
                landmarks[joint] = value
            else:
                landmarks[joint] = Landmark.model_validate(value)
        return cls(landmarks=landmarks)

    def to_array(self) -> np.ndarray:
        """Return a (33, 4) array with NaN rows for absent joints."""
        out = np.full((NUM_LANDMARKS, 4), np.nan, dtype=np.float64)
        for joint, lm in self.landmarks.items():
            out[joint.value] = (lm.x, lm.y, lm.z, lm.visibility)
        return out
