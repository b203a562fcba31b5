"""
Detection domain models.
Strict result types produced at the backend boundary.
"""

from enum import Enum
from typing import List, Optional, Tuple
from pydantic import BaseModel, Field


class ExecutionDevice(str, Enum):
    """Accelerated computation path requested from the host."""

    CUDA = "cuda"
    MPS = "mps"
    CPU = "cpu"


class BackendCandidate(BaseModel):
    """A (model, execution device) pair attempted during initialization."""

    model_id: str
    device: ExecutionDevice

    def __str__(self) -> str:
        return f"{self.model_id}@{self.device.value}"

    class Config:
        frozen = True


class LoadPhase(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


class Detection(BaseModel):
    """A single classification label with its confidence."""

    label: str
    score: float = Field(..., ge=0, le=1)

    class Config:
        frozen = True


class ModelStatus(BaseModel):
    """Snapshot of the classification controller for status endpoints."""

    state: LoadPhase
    model_id: Optional[str] = None
    device: Optional[str] = None
    using_fallback: bool = False
    last_error: Optional[str] = None
    last_error_code: Optional[str] = None


def sort_and_cap(detections: List[Detection], top_k: int) -> List[Detection]:
    """Order by descending score and keep at most top_k entries."""
    return sorted(detections, key=lambda d: d.score, reverse=True)[:top_k]


# === Perception results ===

class EmotionResult(BaseModel):
    """Coarse emotion estimate for one face."""

    emotion: str
    probability: float = Field(..., ge=0, le=1)
    facial_landmarks: Optional[List[Tuple[float, float]]] = None


class Keypoint(BaseModel):
    part: str
    x: float
    y: float
    score: float = Field(..., ge=0, le=1)


class PoseResult(BaseModel):
    keypoints: List[Keypoint]
    score: float = Field(..., ge=0, le=1)


class Analysis(BaseModel):
    """Full perception output for one image."""

    objects: List[Detection] = []
    emotions: List[EmotionResult] = []
    poses: List[PoseResult] = []
