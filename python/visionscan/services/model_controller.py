"""
Model acquisition controller for object classification.

Owns the single LoadState of the classifier:

    UNINITIALIZED -> INITIALIZING -> READY | FAILED
    FAILED -> INITIALIZING (manual retry)

Initialization walks the fixed candidate list (model x device, fastest
device first) one candidate at a time and stops at the first success.
When every candidate fails, the separately hosted ONNX fallback is tried.
Concurrent callers join the in-flight attempt instead of starting another.
"""

import asyncio
import functools
from typing import Callable, List, Optional, Sequence, Tuple

from visionscan.core.exceptions import (
    AllBackendsExhaustedError,
    BackendError,
    ModelFetchError,
    NotInitializedError,
)
from visionscan.core.logging import get_logger
from visionscan.models.domain.detection import (
    BackendCandidate,
    Detection,
    ExecutionDevice,
    LoadPhase,
    ModelStatus,
    sort_and_cap,
)
from visionscan.services.backends.base import ClassifierBackend, ImageInput
from visionscan.services.image_utils import as_rgb_array, validate_image

logger = get_logger(__name__)

TOP_K = 5
# Stage progress stays below this; 100 is reserved for the final success event
STAGE_PROGRESS_CEILING = 90

ProgressCallback = Callable[[int], None]
PrimaryLoader = Callable[[BackendCandidate], ClassifierBackend]
FallbackLoader = Callable[[], ClassifierBackend]


def build_candidates(model_ids: Sequence[str], devices: Sequence[str]) -> Tuple[BackendCandidate, ...]:
    """
    Expand the prioritized model list into ordered (model, device) candidates.

    Every device is tried for a model before moving on to the next model.
    """
    ordered_devices = [ExecutionDevice(d) for d in devices]
    return tuple(
        BackendCandidate(model_id=model_id, device=device)
        for model_id in model_ids
        for device in ordered_devices
    )


class ProgressReporter:
    """
    Fans progress out to every caller waiting on one initialization attempt.

    Each subscriber sees a non-decreasing sequence and exactly one final 100.
    """

    def __init__(self):
        self._subscribers: List[list] = []
        self._current = 0
        self._completed = False

    @property
    def current(self) -> int:
        return self._current

    def subscribe(self, callback: ProgressCallback) -> None:
        entry = [callback, 0]
        self._subscribers.append(entry)
        if self._completed:
            self._emit(entry, 100)
        elif self._current > 0:
            self._emit(entry, self._current)

    def report(self, percentage: int) -> None:
        if self._completed:
            return
        value = max(0, min(STAGE_PROGRESS_CEILING, int(percentage)))
        if value <= self._current:
            return
        self._current = value
        for entry in self._subscribers:
            self._emit(entry, value)

    def complete(self) -> None:
        if self._completed:
            return
        self._completed = True
        self._current = 100
        for entry in self._subscribers:
            self._emit(entry, 100)

    @staticmethod
    def _emit(entry: list, value: int) -> None:
        callback, last = entry
        if value <= last:
            return
        entry[1] = value
        notify_progress(callback, value)


def notify_progress(callback: ProgressCallback, value: int) -> None:
    try:
        callback(value)
    except Exception as e:
        logger.warning(f"Progress callback failed: {type(e).__name__}: {e}")


class ModelController:
    """
    Lazily initialized object classifier with ordered backend fallback.

    Loaders are injected so the cascade can be driven without real models.
    """

    def __init__(
        self,
        candidates: Sequence[BackendCandidate],
        primary_loader: PrimaryLoader,
        fallback_loader: Optional[FallbackLoader] = None,
        top_k: int = TOP_K,
    ):
        self._candidates = tuple(candidates)
        self._primary_loader = primary_loader
        self._fallback_loader = fallback_loader
        self._top_k = top_k

        self._phase = LoadPhase.UNINITIALIZED
        self._backend: Optional[ClassifierBackend] = None
        self._using_fallback = False
        self._last_error: Optional[BackendError] = None
        self._attempt: Optional[asyncio.Task] = None
        self._progress: Optional[ProgressReporter] = None
        self.attempt_count = 0

    # ==================== State ====================

    @property
    def phase(self) -> LoadPhase:
        return self._phase

    @property
    def is_ready(self) -> bool:
        return self._phase == LoadPhase.READY and self._backend is not None

    @property
    def using_fallback(self) -> bool:
        return self._using_fallback

    @property
    def backend(self) -> Optional[ClassifierBackend]:
        return self._backend

    @property
    def last_error(self) -> Optional[BackendError]:
        return self._last_error

    @property
    def candidates(self) -> Tuple[BackendCandidate, ...]:
        return self._candidates

    def status(self) -> ModelStatus:
        return ModelStatus(
            state=self._phase,
            model_id=self._backend.model_id if self._backend else None,
            device=self._backend.device if self._backend else None,
            using_fallback=self._using_fallback,
            last_error=self._last_error.message if self._last_error else None,
            last_error_code=self._last_error.code if self._last_error else None,
        )

    def reset(self) -> None:
        """Return to UNINITIALIZED so the next call loads again."""
        if self._attempt is not None and not self._attempt.done():
            raise RuntimeError("Cannot reset while initialization is in progress")
        self._phase = LoadPhase.UNINITIALIZED
        self._backend = None
        self._using_fallback = False
        self._last_error = None
        self._attempt = None
        self._progress = None

    # ==================== Initialization ====================

    async def initialize(self, on_progress: Optional[ProgressCallback] = None) -> None:
        """
        Bring a classifier backend up, or join the attempt already running.

        Raises:
            AllBackendsExhaustedError: every candidate and the fallback failed
        """
        if self.is_ready:
            if on_progress is not None:
                notify_progress(on_progress, 100)
            return

        if self._attempt is not None and not self._attempt.done():
            logger.info("Initialization already in progress, waiting...")
            if on_progress is not None:
                self._progress.subscribe(on_progress)
        else:
            self._phase = LoadPhase.INITIALIZING
            self._last_error = None
            self._progress = ProgressReporter()
            if on_progress is not None:
                self._progress.subscribe(on_progress)
            self._attempt = asyncio.get_running_loop().create_task(
                self._run_cascade(self._progress)
            )
            self._attempt.add_done_callback(consume_task_result)

        # A caller that stops waiting must not cancel the shared attempt
        await asyncio.shield(self._attempt)

    async def _run_cascade(self, progress: ProgressReporter) -> None:
        self.attempt_count += 1
        errors: List[BackendError] = []
        total_stages = len(self._candidates) + (1 if self._fallback_loader else 0)
        logger.info(f"Initializing object detection ({len(self._candidates)} candidates)...")

        for index, candidate in enumerate(self._candidates):
            logger.info(f"Attempting backend {candidate} ({index + 1}/{len(self._candidates)})")
            backend = await self._attempt_load(
                str(candidate), functools.partial(self._primary_loader, candidate), errors
            )
            if backend is not None:
                self._mark_ready(backend, using_fallback=False)
                progress.complete()
                logger.info(f"Object detection ready: {candidate}")
                return
            progress.report(_stage_percentage(index + 1, total_stages))

        if self._fallback_loader is not None:
            logger.info("All primary backends failed, attempting fallback model...")
            backend = await self._attempt_load("fallback", self._fallback_loader, errors)
            if backend is not None:
                self._mark_ready(backend, using_fallback=True)
                progress.complete()
                logger.info(f"Object detection ready on fallback ({backend.model_id}@{backend.device})")
                return

        error = AllBackendsExhaustedError(errors)
        self._phase = LoadPhase.FAILED
        self._last_error = error
        logger.error(f"Object detection initialization failed ({error.reason}): {len(errors)} attempts")
        raise error

    async def _attempt_load(
        self,
        label: str,
        load: Callable[[], ClassifierBackend],
        errors: List[BackendError],
    ) -> Optional[ClassifierBackend]:
        """Run one blocking loader in a worker thread; record and swallow its failure."""
        try:
            return await asyncio.to_thread(load)
        except BackendError as e:
            logger.warning(f"Backend {label} unavailable: {e.message}")
            errors.append(e)
        except Exception as e:
            logger.warning(f"Backend {label} failed: {type(e).__name__}: {e}")
            errors.append(ModelFetchError(label, f"{type(e).__name__}: {e}"))
        return None

    def _mark_ready(self, backend: ClassifierBackend, using_fallback: bool) -> None:
        self._backend = backend
        self._using_fallback = using_fallback
        self._last_error = None
        self._phase = LoadPhase.READY

    # ==================== Classification ====================

    async def classify(self, image: ImageInput) -> List[Detection]:
        """
        Classify a decoded image with whichever backend is ready.

        Raises:
            InvalidImageError: image missing or zero-sized (checked before any loading)
            NotInitializedError: on-demand initialization failed
        """
        validate_image(image)
        array = as_rgb_array(image)

        if not self.is_ready:
            try:
                await self.initialize()
            except AllBackendsExhaustedError as e:
                raise NotInitializedError(e) from e

        backend = self._backend
        detections = await asyncio.to_thread(backend.classify, array, self._top_k)
        logger.debug(f"Detection results ({backend.model_id}): {detections}")
        return sort_and_cap(detections, self._top_k)


def _stage_percentage(done: int, total: int) -> int:
    if total <= 0:
        return 0
    return (done * STAGE_PROGRESS_CEILING) // total


def consume_task_result(task: asyncio.Task) -> None:
    """Mark the attempt's exception as retrieved when every caller stopped waiting."""
    if not task.cancelled():
        task.exception()


# Global singleton instance
_controller_instance: Optional[ModelController] = None


def get_model_controller() -> ModelController:
    """Get or create the process-wide controller built from settings."""
    global _controller_instance
    if _controller_instance is None:
        from visionscan.core.config import settings
        from visionscan.services.backends.hf_pipeline import load_candidate
        from visionscan.services.backends.onnx_fallback import load_fallback

        _controller_instance = ModelController(
            candidates=build_candidates(settings.primary_model_ids, settings.device_order),
            primary_loader=load_candidate,
            fallback_loader=load_fallback,
            top_k=settings.top_k,
        )
    return _controller_instance
