"""
InsightFace face analyzer.
Detects faces and their 68-point landmarks for the expression estimator.
"""

from typing import Any, List, Optional

import cv2
import numpy as np

from visionscan.core.exceptions import ModelFetchError
from visionscan.core.logging import get_logger

logger = get_logger(__name__)

MAX_FACES = 5
MIN_DETECTION_SCORE = 0.8


class FaceObservation:
    """One detected face: detector confidence and 68 landmark points (x, y)."""

    def __init__(self, det_score: float, landmarks: Optional[np.ndarray]):
        self.det_score = det_score
        self.landmarks = landmarks

    @property
    def in_view(self) -> bool:
        return self.det_score >= MIN_DETECTION_SCORE


class FaceAnalyzer:
    """
    Manages the InsightFace FaceAnalysis lifecycle.
    Only the detector and 68-point landmark models are loaded.
    """

    MODEL_NAME = 'buffalo_l'

    def __init__(self, app: Any = None):
        self.app = app

    @classmethod
    def load(cls) -> "FaceAnalyzer":
        """
        Create and prepare FaceAnalysis on CPU.

        Raises:
            ModelFetchError: model pack could not be downloaded or prepared
        """
        logger.info(f"Creating FaceAnalysis ({cls.MODEL_NAME})...")
        try:
            from insightface.app import FaceAnalysis

            app = FaceAnalysis(
                name=cls.MODEL_NAME,
                allowed_modules=['detection', 'landmark_3d_68'],
                providers=['CPUExecutionProvider']
            )
            app.prepare(ctx_id=-1, det_size=(640, 640))
        except Exception as e:
            raise ModelFetchError(cls.MODEL_NAME, f"{type(e).__name__}: {e}") from e

        if hasattr(app, 'models') and 'detection' not in app.models:
            raise ModelFetchError(cls.MODEL_NAME, "'detection' model not loaded")

        logger.info("FaceAnalysis ready")
        return cls(app)

    def detect(self, image: np.ndarray) -> List[FaceObservation]:
        """
        Detect faces on an RGB image.

        Returns:
            At most MAX_FACES observations, highest detector score first
        """
        # InsightFace expects BGR
        faces = self.app.get(cv2.cvtColor(image, cv2.COLOR_RGB2BGR))
        faces = sorted(faces, key=lambda f: float(f.det_score), reverse=True)[:MAX_FACES]

        observations = []
        for face in faces:
            landmarks = getattr(face, 'landmark_3d_68', None)
            points = np.asarray(landmarks)[:, :2] if landmarks is not None else None
            observations.append(FaceObservation(float(face.det_score), points))
        return observations
