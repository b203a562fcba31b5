from __future__ import annotations

import asyncio
import threading

import numpy as np
import pytest

from conftest import FakeBackend, ScriptedLoader, candidate
from visionscan.core.exceptions import (
    AllBackendsExhaustedError,
    DeviceUnavailableError,
    InvalidImageError,
    ModelFetchError,
    NotInitializedError,
)
from visionscan.models.domain.detection import Detection, LoadPhase
from visionscan.services.model_controller import (
    ModelController,
    ProgressReporter,
    build_candidates,
)


def _non_decreasing(values):
    return all(a <= b for a, b in zip(values, values[1:]))


# ==================== Candidate list ====================


def test_build_candidates_tries_every_device_before_next_model():
    candidates = build_candidates(["a", "b"], ["cuda", "cpu"])
    assert [str(c) for c in candidates] == ["a@cuda", "a@cpu", "b@cuda", "b@cpu"]


# ==================== Cascade ====================


async def test_first_successful_candidate_wins_and_later_ones_are_never_tried():
    candidates = [candidate("m1", "cuda"), candidate("m1", "cpu"), candidate("m2", "cpu")]
    loader = ScriptedLoader({
        "m1@cuda": DeviceUnavailableError("cuda", "CUDA is not available"),
        "m1@cpu": FakeBackend("m1", "cpu"),
        "m2@cpu": FakeBackend("m2", "cpu"),
    })
    controller = ModelController(candidates, loader)

    await controller.initialize()

    assert loader.calls == ["m1@cuda", "m1@cpu"]
    assert controller.phase == LoadPhase.READY
    assert controller.backend.model_id == "m1"
    assert controller.backend.device == "cpu"
    assert controller.using_fallback is False
    assert controller.last_error is None


async def test_fallback_is_used_only_after_every_primary_failed():
    candidates = [candidate("m1"), candidate("m2")]
    loader = ScriptedLoader({
        "m1@cpu": ModelFetchError("m1", "404"),
        "m2@cpu": ModelFetchError("m2", "404"),
    })
    fallback_calls = []

    def fallback():
        fallback_calls.append(True)
        return FakeBackend("mobilenet_v2", "cpu")

    controller = ModelController(candidates, loader, fallback_loader=fallback)
    await controller.initialize()

    assert loader.calls == ["m1@cpu", "m2@cpu"]
    assert fallback_calls == [True]
    assert controller.using_fallback is True
    status = controller.status()
    assert status.state == LoadPhase.READY
    assert status.model_id == "mobilenet_v2"
    assert status.using_fallback is True


async def test_all_backends_failing_raises_and_marks_failed():
    candidates = [candidate("m1", "cuda"), candidate("m1", "cpu")]
    loader = ScriptedLoader({
        "m1@cuda": DeviceUnavailableError("cuda"),
        "m1@cpu": ModelFetchError("m1", "network unreachable"),
    })

    def fallback():
        raise ModelFetchError("mobilenet_v2", "download failed")

    controller = ModelController(candidates, loader, fallback_loader=fallback)

    with pytest.raises(AllBackendsExhaustedError) as exc_info:
        await controller.initialize()

    error = exc_info.value
    assert error.reason == "model_fetch"
    assert len(error.errors) == 3
    assert error.status_code == 503
    assert controller.phase == LoadPhase.FAILED
    assert controller.backend is None
    assert controller.status().last_error_code == "ALL_BACKENDS_EXHAUSTED"


async def test_exhaustion_reason_is_no_device_when_only_devices_were_missing():
    loader = ScriptedLoader({
        "m1@cuda": DeviceUnavailableError("cuda"),
        "m1@mps": DeviceUnavailableError("mps"),
    })

    def fallback():
        raise DeviceUnavailableError("onnxruntime", "no execution provider available")

    controller = ModelController([candidate("m1", "cuda"), candidate("m1", "mps")], loader, fallback)

    with pytest.raises(AllBackendsExhaustedError) as exc_info:
        await controller.initialize()

    assert exc_info.value.reason == "no_device"
    assert exc_info.value.details["reason"] == "no_device"


async def test_unexpected_loader_exception_counts_as_model_fetch_failure():
    loader = ScriptedLoader({"m1@cpu": ValueError("corrupt weights")})
    controller = ModelController([candidate("m1")], loader)

    with pytest.raises(AllBackendsExhaustedError) as exc_info:
        await controller.initialize()

    [error] = exc_info.value.errors
    assert isinstance(error, ModelFetchError)
    assert "corrupt weights" in error.message


async def test_failed_controller_retries_whole_cascade_on_next_initialize():
    outcomes = {"m1@cpu": ModelFetchError("m1", "offline")}
    loader = ScriptedLoader(outcomes)
    controller = ModelController([candidate("m1")], loader)

    with pytest.raises(AllBackendsExhaustedError):
        await controller.initialize()

    outcomes["m1@cpu"] = FakeBackend("m1")
    await controller.initialize()

    assert controller.is_ready
    assert controller.attempt_count == 2
    assert loader.calls == ["m1@cpu", "m1@cpu"]


async def test_initialize_when_ready_does_not_reload():
    loader = ScriptedLoader({"m1@cpu": FakeBackend("m1")})
    controller = ModelController([candidate("m1")], loader)
    await controller.initialize()

    progress = []
    await controller.initialize(on_progress=progress.append)

    assert loader.calls == ["m1@cpu"]
    assert progress == [100]


# ==================== Concurrency ====================


async def test_concurrent_initialize_calls_share_one_attempt():
    gate = threading.Event()
    loader = ScriptedLoader({"m1@cpu": FakeBackend("m1")}, gate=gate)
    controller = ModelController([candidate("m1")], loader)

    callers = [asyncio.create_task(controller.initialize()) for _ in range(5)]
    await asyncio.sleep(0)
    assert controller.phase == LoadPhase.INITIALIZING
    gate.set()
    await asyncio.gather(*callers)

    assert loader.calls == ["m1@cpu"]
    assert controller.attempt_count == 1
    assert controller.is_ready


async def test_concurrent_callers_all_see_the_same_failure():
    gate = threading.Event()
    loader = ScriptedLoader({"m1@cpu": ModelFetchError("m1", "offline")}, gate=gate)
    controller = ModelController([candidate("m1")], loader)

    callers = [asyncio.create_task(controller.initialize()) for _ in range(3)]
    await asyncio.sleep(0)
    gate.set()
    results = await asyncio.gather(*callers, return_exceptions=True)

    assert all(isinstance(r, AllBackendsExhaustedError) for r in results)
    assert len({id(r) for r in results}) == 1
    assert controller.attempt_count == 1


async def test_cancelled_caller_does_not_abort_shared_attempt():
    gate = threading.Event()
    loader = ScriptedLoader({"m1@cpu": FakeBackend("m1")}, gate=gate)
    controller = ModelController([candidate("m1")], loader)

    first = asyncio.create_task(controller.initialize())
    second = asyncio.create_task(controller.initialize())
    await asyncio.sleep(0)

    first.cancel()
    with pytest.raises(asyncio.CancelledError):
        await first

    gate.set()
    await second

    assert controller.is_ready
    assert loader.calls == ["m1@cpu"]


async def test_reset_is_refused_while_attempt_is_running():
    gate = threading.Event()
    loader = ScriptedLoader({"m1@cpu": FakeBackend("m1")}, gate=gate)
    controller = ModelController([candidate("m1")], loader)

    task = asyncio.create_task(controller.initialize())
    await asyncio.sleep(0)
    with pytest.raises(RuntimeError):
        controller.reset()

    gate.set()
    await task
    controller.reset()
    assert controller.phase == LoadPhase.UNINITIALIZED
    assert controller.backend is None


# ==================== Progress ====================


async def test_progress_is_non_decreasing_and_ends_with_single_100():
    candidates = [candidate("m1"), candidate("m2"), candidate("m3")]
    loader = ScriptedLoader({
        "m1@cpu": ModelFetchError("m1", "404"),
        "m2@cpu": ModelFetchError("m2", "404"),
        "m3@cpu": FakeBackend("m3"),
    })
    controller = ModelController(candidates, loader)

    progress = []
    await controller.initialize(on_progress=progress.append)

    assert progress == [30, 60, 100]
    assert _non_decreasing(progress)
    assert progress.count(100) == 1


async def test_progress_never_reaches_100_on_failure():
    loader = ScriptedLoader({"m1@cpu": ModelFetchError("m1", "404")})
    def fallback():
        raise ModelFetchError("mobilenet_v2", "offline")

    controller = ModelController([candidate("m1")], loader, fallback_loader=fallback)

    progress = []
    with pytest.raises(AllBackendsExhaustedError):
        await controller.initialize(on_progress=progress.append)

    assert 100 not in progress
    assert all(p <= 90 for p in progress)


async def test_joining_caller_gets_current_progress_then_completion():
    gate = threading.Event()
    loader = ScriptedLoader({"m1@cpu": FakeBackend("m1")}, gate=gate)
    controller = ModelController([candidate("m1")], loader)

    first_progress, second_progress = [], []
    first = asyncio.create_task(controller.initialize(on_progress=first_progress.append))
    second = asyncio.create_task(controller.initialize(on_progress=second_progress.append))
    await asyncio.sleep(0)
    gate.set()
    await asyncio.gather(first, second)

    assert first_progress == [100]
    assert second_progress == [100]


def test_progress_reporter_clamps_and_ignores_regressions():
    reporter = ProgressReporter()
    seen = []
    reporter.subscribe(seen.append)

    reporter.report(40)
    reporter.report(20)
    reporter.report(250)
    reporter.complete()
    reporter.complete()
    reporter.report(95)

    assert seen == [40, 90, 100]
    assert reporter.current == 100


def test_progress_reporter_isolates_failing_callbacks():
    reporter = ProgressReporter()
    seen = []

    def broken(_value):
        raise RuntimeError("ui gone")

    reporter.subscribe(broken)
    reporter.subscribe(seen.append)
    reporter.report(50)
    reporter.complete()

    assert seen == [50, 100]


def test_late_subscriber_after_completion_gets_single_100():
    reporter = ProgressReporter()
    reporter.report(30)
    reporter.complete()

    seen = []
    reporter.subscribe(seen.append)
    assert seen == [100]


# ==================== Classification ====================


async def test_classify_rejects_empty_image_without_loading():
    loader = ScriptedLoader({"m1@cpu": FakeBackend("m1")})
    controller = ModelController([candidate("m1")], loader)

    with pytest.raises(InvalidImageError):
        await controller.classify(np.zeros((0, 32, 3), dtype=np.uint8))
    with pytest.raises(InvalidImageError):
        await controller.classify(None)

    assert loader.calls == []
    assert controller.phase == LoadPhase.UNINITIALIZED


async def test_classify_initializes_on_demand_and_sorts_top_five(rgb_image):
    scores = [0.05, 0.4, 0.01, 0.3, 0.9, 0.2, 0.02]
    backend = FakeBackend("m1", detections=[
        Detection(label=f"label-{i}", score=s) for i, s in enumerate(scores)
    ])
    controller = ModelController([candidate("m1")], ScriptedLoader({"m1@cpu": backend}))

    detections = await controller.classify(rgb_image)

    assert controller.is_ready
    assert [d.score for d in detections] == [0.9, 0.4, 0.3, 0.2, 0.05]
    assert detections[0].label == "label-4"


async def test_classify_converts_grayscale_to_rgb_before_dispatch():
    backend = FakeBackend("m1")
    controller = ModelController([candidate("m1")], ScriptedLoader({"m1@cpu": backend}))

    await controller.classify(np.full((10, 12), 128, dtype=np.uint8))

    assert backend.seen_shapes == [((10, 12, 3), np.dtype(np.uint8))]


async def test_classify_raises_not_initialized_when_loading_fails(rgb_image):
    controller = ModelController(
        [candidate("m1")], ScriptedLoader({"m1@cpu": ModelFetchError("m1", "offline")})
    )

    with pytest.raises(NotInitializedError) as exc_info:
        await controller.classify(rgb_image)

    assert exc_info.value.code == "MODEL_NOT_INITIALIZED"
    assert exc_info.value.details == {"reason": "ALL_BACKENDS_EXHAUSTED"}
    assert controller.phase == LoadPhase.FAILED


async def test_classify_uses_fallback_backend_transparently(rgb_image):
    fallback_backend = FakeBackend("mobilenet_v2", detections=[Detection(label="coffee mug", score=0.7)])
    controller = ModelController(
        [candidate("m1")],
        ScriptedLoader({"m1@cpu": ModelFetchError("m1", "offline")}),
        fallback_loader=lambda: fallback_backend,
    )

    detections = await controller.classify(rgb_image)

    assert detections == [Detection(label="coffee mug", score=0.7)]
    assert controller.using_fallback
