"""
PerceptionService - facade over the three perception backends.

- object classification via ModelController (ordered fallback)
- faces + landmarks via InsightFace, fed to the expression estimator
- multi-person pose via YOLO pose

All three are always needed for a full analysis, so they load concurrently.
"""

import asyncio
from typing import Callable, List, Optional

import numpy as np

from visionscan.core.exceptions import AppException, BackendError
from visionscan.core.logging import get_logger
from visionscan.models.domain.detection import Analysis, Detection, EmotionResult, PoseResult
from visionscan.services.backends.base import ImageInput
from visionscan.services.backends.face import FaceAnalyzer
from visionscan.services.backends.pose import PoseEstimator
from visionscan.services.emotion import estimate_emotion
from visionscan.services.image_utils import as_rgb_array, validate_image
from visionscan.services.model_controller import (
    ModelController,
    ProgressCallback,
    ProgressReporter,
    consume_task_result,
    get_model_controller,
    notify_progress,
)

logger = get_logger(__name__)

COMPONENTS = 3


class PerceptionService:
    """Runs object, emotion and pose detection on one image."""

    def __init__(
        self,
        controller: ModelController,
        face_loader: Callable[[], FaceAnalyzer] = FaceAnalyzer.load,
        pose_loader: Callable[[], PoseEstimator] = PoseEstimator.load,
        confidence_threshold: float = 0.5,
    ):
        self._controller = controller
        self._face_loader = face_loader
        self._pose_loader = pose_loader
        self._confidence_threshold = confidence_threshold
        self._faces: Optional[FaceAnalyzer] = None
        self._poses: Optional[PoseEstimator] = None
        self._load_task: Optional[asyncio.Task] = None
        self._progress: Optional[ProgressReporter] = None

    @property
    def is_ready(self) -> bool:
        return self._controller.is_ready and self._faces is not None and self._poses is not None

    # ==================== Loading ====================

    async def load(self, on_progress: Optional[ProgressCallback] = None) -> None:
        """
        Load all three backends concurrently.

        Raises:
            BackendError: at least one backend failed to load
        """
        if self.is_ready:
            if on_progress is not None:
                notify_progress(on_progress, 100)
            return

        if self._load_task is not None and not self._load_task.done():
            if on_progress is not None:
                self._progress.subscribe(on_progress)
        else:
            self._progress = ProgressReporter()
            if on_progress is not None:
                self._progress.subscribe(on_progress)
            self._load_task = asyncio.get_running_loop().create_task(self._load_all(self._progress))
            self._load_task.add_done_callback(consume_task_result)

        await asyncio.shield(self._load_task)

    async def _load_all(self, progress: ProgressReporter) -> None:
        loaded = 0

        def step() -> None:
            nonlocal loaded
            loaded += 1
            progress.report(loaded * 100 // COMPONENTS)

        async def load_objects() -> None:
            await self._controller.initialize()
            step()

        async def load_faces() -> None:
            if self._faces is None:
                self._faces = await asyncio.to_thread(self._face_loader)
            step()

        async def load_poses() -> None:
            if self._poses is None:
                self._poses = await asyncio.to_thread(self._pose_loader)
            step()

        results = await asyncio.gather(load_objects(), load_faces(), load_poses(), return_exceptions=True)
        failures = [r for r in results if isinstance(r, BaseException)]
        if failures:
            for failure in failures:
                logger.error(f"Model loading failed: {type(failure).__name__}: {failure}")
            raise BackendError(
                "Failed to load AI models",
                code="PERCEPTION_LOAD_FAILED",
                details={
                    "failures": [
                        f.to_dict() if isinstance(f, AppException) else {"message": str(f)}
                        for f in failures
                    ]
                },
            )
        progress.complete()
        logger.info("All perception models loaded")

    # ==================== Analysis ====================

    async def analyze(self, image: ImageInput) -> Analysis:
        """
        Run the three detections concurrently on one image.

        Objects are filtered to the confidence threshold.
        """
        validate_image(image)
        array = as_rgb_array(image)
        if not self.is_ready:
            await self.load()

        objects, emotions, poses = await asyncio.gather(
            self.detect_objects(array),
            self.detect_emotions(array),
            self.detect_poses(array),
        )
        return Analysis(objects=objects, emotions=emotions, poses=poses)

    async def detect_objects(self, image: np.ndarray) -> List[Detection]:
        detections = await self._controller.classify(image)
        return [d for d in detections if d.score >= self._confidence_threshold]

    async def detect_emotions(self, image: np.ndarray) -> List[EmotionResult]:
        if self._faces is None:
            return []
        faces = await asyncio.to_thread(self._faces.detect, image)
        return [estimate_emotion(face.landmarks, in_view=face.in_view) for face in faces]

    async def detect_poses(self, image: np.ndarray) -> List[PoseResult]:
        if self._poses is None:
            return []
        return await asyncio.to_thread(self._poses.estimate, image)


# Global singleton instance
_perception_instance: Optional[PerceptionService] = None


def get_perception_service() -> PerceptionService:
    """Get or create the process-wide perception service."""
    global _perception_instance
    if _perception_instance is None:
        from visionscan.core.config import settings

        _perception_instance = PerceptionService(
            get_model_controller(),
            confidence_threshold=settings.confidence_threshold,
        )
    return _perception_instance
