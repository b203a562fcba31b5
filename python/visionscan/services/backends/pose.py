"""
Multi-person pose estimator (Ultralytics YOLO pose).
"""

from typing import Any, List

import numpy as np

from visionscan.core.exceptions import ModelFetchError
from visionscan.core.logging import get_logger
from visionscan.models.domain.detection import Keypoint, PoseResult

logger = get_logger(__name__)

POSE_WEIGHTS = "yolov8n-pose.pt"
MAX_DETECTIONS = 5
SCORE_THRESHOLD = 0.3

# COCO keypoint order emitted by YOLO pose models
KEYPOINT_PARTS = (
    "nose",
    "leftEye",
    "rightEye",
    "leftEar",
    "rightEar",
    "leftShoulder",
    "rightShoulder",
    "leftElbow",
    "rightElbow",
    "leftWrist",
    "rightWrist",
    "leftHip",
    "rightHip",
    "leftKnee",
    "rightKnee",
    "leftAnkle",
    "rightAnkle",
)


def _clamp01(value: float) -> float:
    return float(min(1.0, max(0.0, value)))


def to_pose_results(keypoints: np.ndarray, scores: np.ndarray) -> List[PoseResult]:
    """
    Convert raw arrays into PoseResult objects.

    Args:
        keypoints: (N, 17, 3) array of x, y, confidence
        scores: (N,) per-person confidence

    Returns:
        Poses scoring at least SCORE_THRESHOLD, best first, at most MAX_DETECTIONS
    """
    poses = []
    for person, score in zip(keypoints, scores):
        if float(score) < SCORE_THRESHOLD:
            continue
        points = [
            Keypoint(part=part, x=float(kp[0]), y=float(kp[1]), score=_clamp01(kp[2] if len(kp) > 2 else 1.0))
            for part, kp in zip(KEYPOINT_PARTS, person)
        ]
        poses.append(PoseResult(keypoints=points, score=_clamp01(score)))
    poses.sort(key=lambda p: p.score, reverse=True)
    return poses[:MAX_DETECTIONS]


class PoseEstimator:
    """YOLO pose model wrapper."""

    def __init__(self, model: Any = None):
        self._model = model

    @classmethod
    def load(cls, weights: str = POSE_WEIGHTS) -> "PoseEstimator":
        """
        Raises:
            ModelFetchError: weights could not be fetched or loaded
        """
        logger.info(f"Loading pose model {weights}...")
        try:
            from ultralytics import YOLO

            model = YOLO(weights)
        except Exception as e:
            raise ModelFetchError(weights, f"{type(e).__name__}: {e}") from e
        logger.info("Pose model ready")
        return cls(model)

    def estimate(self, image: np.ndarray) -> List[PoseResult]:
        """Estimate poses on an RGB image."""
        # Ultralytics treats numpy input as BGR
        results = self._model.predict(
            source=np.ascontiguousarray(image[:, :, ::-1]),
            conf=SCORE_THRESHOLD,
            max_det=MAX_DETECTIONS,
            verbose=False,
        )
        if not results:
            return []
        r = results[0]
        if r.keypoints is None or r.boxes is None or len(r.boxes) == 0:
            return []
        keypoints = r.keypoints.data.cpu().numpy()
        scores = r.boxes.conf.cpu().numpy()
        return to_pose_results(keypoints, scores)
