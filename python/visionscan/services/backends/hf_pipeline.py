"""
Primary object classifier: Hugging Face transformers image-classification pipeline.

Models are pulled from the Hugging Face hub on first use and cached by
huggingface_hub. Each (model, device) pair is one backend candidate.
"""

from typing import List, Optional

import numpy as np

from visionscan.core.exceptions import DeviceUnavailableError, ModelFetchError
from visionscan.core.logging import get_logger
from visionscan.models.domain.detection import BackendCandidate, Detection, ExecutionDevice
from visionscan.services.backends.base import ClassifierBackend, to_detection, to_pil

logger = get_logger(__name__)

TASK = "image-classification"


def probe_device(device: ExecutionDevice) -> Optional[str]:
    """
    Check whether torch can run on the requested device.

    Returns:
        None if usable, otherwise a short reason string
    """
    if device == ExecutionDevice.CPU:
        return None
    try:
        import torch
    except ImportError:
        return "torch is not installed"

    if device == ExecutionDevice.CUDA:
        if not torch.cuda.is_available():
            return "CUDA is not available"
        return None
    if device == ExecutionDevice.MPS:
        mps = getattr(torch.backends, "mps", None)
        if mps is None or not mps.is_available():
            return "MPS is not available"
        return None
    return f"unsupported device {device.value}"


def _is_device_failure(error: Exception) -> bool:
    text = str(error)
    return isinstance(error, RuntimeError) and (
        "CUDA" in text or "no kernel image" in text or "device" in text.lower()
    )


class PipelineBackend(ClassifierBackend):
    """transformers pipeline bound to one model and device."""

    def __init__(self, pipe, candidate: BackendCandidate):
        self._pipe = pipe
        self.model_id = candidate.model_id
        self.device = candidate.device.value

    @classmethod
    def load(cls, candidate: BackendCandidate) -> "PipelineBackend":
        """
        Build the pipeline for a candidate.

        Raises:
            DeviceUnavailableError: device probe failed or torch rejected the device
            ModelFetchError: model could not be downloaded or parsed
        """
        reason = probe_device(candidate.device)
        if reason:
            raise DeviceUnavailableError(candidate.device.value, reason)

        logger.info(f"Loading {TASK} pipeline {candidate.model_id} on {candidate.device.value}...")
        try:
            from transformers import pipeline

            pipe = pipeline(TASK, model=candidate.model_id, device=candidate.device.value)
        except Exception as e:
            if _is_device_failure(e):
                raise DeviceUnavailableError(candidate.device.value, str(e)) from e
            raise ModelFetchError(candidate.model_id, f"{type(e).__name__}: {e}") from e

        logger.info(f"Pipeline ready: {candidate}")
        return cls(pipe, candidate)

    def classify(self, image: np.ndarray, top_k: int = 5) -> List[Detection]:
        raw = self._pipe(to_pil(image), top_k=top_k)
        # A single image yields a flat list of {"label", "score"} dicts
        if raw and isinstance(raw[0], list):
            raw = raw[0]
        return [to_detection(r["label"], r["score"]) for r in raw]


def load_candidate(candidate: BackendCandidate) -> ClassifierBackend:
    """Default primary loader used by the model controller."""
    return PipelineBackend.load(candidate)
