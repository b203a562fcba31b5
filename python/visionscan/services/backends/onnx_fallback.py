"""
Fallback object classifier: MobileNetV2 graph on ONNX Runtime.

Used only when every transformers candidate failed. The graph is hosted
separately, downloaded once into MODELS_DIR and run with an explicit
provider list (GPU providers first, then CPU).

Uses the official API: InferenceSession(path, sess_options, providers),
session.run(output_names, input_feed), get_providers(), get_inputs().
"""

import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import cv2
import httpx
import numpy as np

from visionscan.core.exceptions import DeviceUnavailableError, ModelFetchError
from visionscan.core.logging import get_logger
from visionscan.models.domain.detection import Detection
from visionscan.services.backends.base import ClassifierBackend, to_detection
from visionscan.services.backends.imagenet_labels import IMAGENET_CLASSES, label_for_index, label_offset

logger = get_logger(__name__)

MODEL_ID = "mobilenet_v2"
DEFAULT_INPUT_SIZE = 224
DOWNLOAD_TIMEOUT = 120.0

# Pixel normalization modes: "imagenet" (per-channel mean/std, ONNX model zoo
# exports) or "unit" (scaled into [-1, 1], TF-Hub style exports)
NORMALIZATION_MODES = ("imagenet", "unit")
IMAGENET_MEAN = np.array([0.485, 0.456, 0.406], dtype=np.float32)
IMAGENET_STD = np.array([0.229, 0.224, 0.225], dtype=np.float32)


def get_provider_candidates() -> Tuple[List[str], List[str]]:
    """
    Return (gpu_providers, cpu_providers) from ort.get_available_providers().
    Both lists are empty when onnxruntime itself is missing.
    """
    try:
        import onnxruntime as ort

        available = ort.get_available_providers()
    except ImportError:
        return ([], [])
    if sys.platform == "win32":
        gpu_order = ("DmlExecutionProvider", "CUDAExecutionProvider")
    elif sys.platform == "darwin":
        gpu_order = ("CoreMLExecutionProvider", "CUDAExecutionProvider")
    else:
        gpu_order = ("CUDAExecutionProvider",)
    gpu = [p for p in gpu_order if p in available]
    cpu = ["CPUExecutionProvider"] if "CPUExecutionProvider" in available else []
    return (gpu, cpu)


def ensure_model_file(url: str, models_dir: str) -> Path:
    """
    Download the fallback graph into models_dir unless it is already cached.

    Raises:
        ModelFetchError: download failed
    """
    target_dir = Path(models_dir)
    target = target_dir / Path(httpx.URL(url).path).name
    if target.exists() and target.stat().st_size > 0:
        logger.info(f"Fallback model cached: {target}")
        return target

    logger.info(f"Downloading fallback model from {url}")
    partial = target.with_suffix(target.suffix + ".part")
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        with httpx.stream("GET", url, follow_redirects=True, timeout=DOWNLOAD_TIMEOUT) as response:
            response.raise_for_status()
            with open(partial, "wb") as f:
                for chunk in response.iter_bytes():
                    f.write(chunk)
        os.replace(partial, target)
    except (httpx.HTTPError, OSError) as e:
        if partial.exists():
            partial.unlink()
        raise ModelFetchError(MODEL_ID, f"download failed: {e}") from e

    logger.info(f"Fallback model saved: {target} ({target.stat().st_size} bytes)")
    return target


def _parse_input(session: Any, default_size: int) -> Tuple[str, int, bool]:
    """
    Read input name, square size and layout from session.get_inputs()[0].

    Returns:
        (input_name, size, channels_last)
    """
    inp = session.get_inputs()[0]
    shape = list(inp.shape or [])
    channels_last = len(shape) == 4 and shape[-1] == 3
    size = default_size
    spatial = shape[1:3] if channels_last else shape[2:4]
    for dim in spatial:
        if isinstance(dim, int) and dim > 0:
            size = dim
            break
    return inp.name, size, channels_last


def preprocess(
    image: np.ndarray,
    size: int,
    channels_last: bool = True,
    normalization: str = "imagenet",
) -> np.ndarray:
    """
    Resize to size x size and normalize pixels for the graph.

    "imagenet" scales to [0, 1] then applies per-channel mean/std;
    "unit" maps pixels into [-1, 1].

    Returns:
        float32 batch of one, NHWC or NCHW
    """
    if image.ndim == 2:
        image = cv2.cvtColor(image, cv2.COLOR_GRAY2RGB)
    elif image.shape[2] == 4:
        image = cv2.cvtColor(image, cv2.COLOR_RGBA2RGB)
    resized = cv2.resize(image, (size, size), interpolation=cv2.INTER_LINEAR)
    if normalization == "unit":
        blob = resized.astype(np.float32) / 127.5 - 1.0
    elif normalization == "imagenet":
        blob = (resized.astype(np.float32) / 255.0 - IMAGENET_MEAN) / IMAGENET_STD
    else:
        raise ValueError(f"Unknown normalization mode: {normalization}")
    if not channels_last:
        blob = np.transpose(blob, (2, 0, 1))
    return np.expand_dims(blob, 0)


def to_probabilities(scores: np.ndarray) -> np.ndarray:
    """Apply softmax unless the scores already form a probability vector."""
    scores = scores.astype(np.float64)
    if scores.min() >= 0.0 and scores.max() <= 1.0 and abs(scores.sum() - 1.0) < 1e-3:
        return scores
    shifted = np.exp(scores - scores.max())
    return shifted / shifted.sum()


def top_k_indices(scores: np.ndarray, k: int) -> List[int]:
    """Indices of the k highest scores, highest first."""
    k = min(k, scores.shape[0])
    if k <= 0:
        return []
    part = np.argpartition(-scores, k - 1)[:k]
    return [int(i) for i in part[np.argsort(-scores[part], kind="stable")]]


class OnnxFallbackBackend(ClassifierBackend):
    """
    ONNX Runtime MobileNet classifier.

    Creates the InferenceSession with explicit providers (GPU then CPU).
    """

    def __init__(
        self,
        session: Any,
        input_size: int = DEFAULT_INPUT_SIZE,
        vocabulary: Optional[Dict[int, str]] = None,
        normalization: str = "imagenet",
    ):
        if normalization not in NORMALIZATION_MODES:
            raise ValueError(f"Unknown normalization mode: {normalization}")
        self._session = session
        self._normalization = normalization
        self._input_name, self._input_size, self._channels_last = _parse_input(session, input_size)
        self._vocabulary = vocabulary if vocabulary is not None else IMAGENET_CLASSES
        self.model_id = MODEL_ID
        providers = list(session.get_providers()) if hasattr(session, "get_providers") else []
        self.device = "gpu" if providers and providers[0] != "CPUExecutionProvider" else "cpu"

    @classmethod
    def load(
        cls,
        url: str,
        models_dir: str,
        input_size: int = DEFAULT_INPUT_SIZE,
        normalization: str = "imagenet",
    ) -> "OnnxFallbackBackend":
        """
        Probe providers, fetch the graph, create a session and warm it up.

        Raises:
            DeviceUnavailableError: onnxruntime exposes no execution provider
            ModelFetchError: graph could not be downloaded or parsed
        """
        gpu_providers, cpu_providers = get_provider_candidates()
        if not gpu_providers and not cpu_providers:
            raise DeviceUnavailableError("onnxruntime", "no execution provider available")

        model_path = ensure_model_file(url, models_dir)

        import onnxruntime as ort

        session = None
        last_error: Optional[Exception] = None
        for providers in (gpu_providers, cpu_providers):
            if not providers:
                continue
            try:
                session = ort.InferenceSession(
                    str(model_path),
                    sess_options=ort.SessionOptions(),
                    providers=providers,
                )
                logger.info(f"ONNX session created with providers: {session.get_providers()}")
                break
            except Exception as e:
                last_error = e
                logger.warning(f"ONNX session with {providers} failed: {e}")

        if session is None:
            raise ModelFetchError(MODEL_ID, f"could not create session: {last_error}")

        backend = cls(session, input_size=input_size, normalization=normalization)
        backend.warm_up()
        return backend

    def warm_up(self) -> None:
        """One dummy inference so the first real call does not pay graph setup."""
        shape = (1, self._input_size, self._input_size, 3) if self._channels_last \
            else (1, 3, self._input_size, self._input_size)
        self._session.run(None, {self._input_name: np.zeros(shape, dtype=np.float32)})

    def classify(self, image: np.ndarray, top_k: int = 5) -> List[Detection]:
        blob = preprocess(image, self._input_size, self._channels_last, self._normalization)
        outputs = self._session.run(None, {self._input_name: blob})
        scores = to_probabilities(np.asarray(outputs[0]).reshape(-1))
        offset = label_offset(scores.shape[0])
        return [
            to_detection(label_for_index(i, self._vocabulary, offset), scores[i])
            for i in top_k_indices(scores, top_k)
        ]


def load_fallback() -> ClassifierBackend:
    """Default fallback loader used by the model controller."""
    from visionscan.core.config import settings

    return OnnxFallbackBackend.load(
        settings.fallback_model_url,
        settings.models_dir,
        input_size=settings.fallback_input_size,
        normalization=settings.fallback_normalization,
    )
