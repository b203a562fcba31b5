"""
Abstract classification backend.
The controller only talks to backends through this contract.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional, Union

import numpy as np
from PIL import Image

from visionscan.models.domain.detection import Detection

ImageInput = Union[np.ndarray, Image.Image]


class ClassifierBackend(ABC):
    """Loaded image classifier bound to one execution device."""

    model_id: str = ""
    device: str = ""

    @abstractmethod
    def classify(self, image: np.ndarray, top_k: int = 5) -> List[Detection]:
        """
        Classify an RGB image.

        Args:
            image: HxWx3 uint8 RGB array
            top_k: Maximum number of labels to return

        Returns:
            Detections sorted by descending score
        """
        ...


def to_detection(label: Any, score: Any) -> Detection:
    """Convert a raw (label, score) pair from a library into a Detection."""
    value = float(score)
    if not np.isfinite(value):
        value = 0.0
    return Detection(label=str(label), score=min(1.0, max(0.0, value)))


def to_pil(image: ImageInput) -> Image.Image:
    """Convert a decoded RGB array to a PIL image (no-op for PIL input)."""
    if isinstance(image, Image.Image):
        return image.convert("RGB") if image.mode != "RGB" else image
    return Image.fromarray(np.ascontiguousarray(image)).convert("RGB")


def image_size(image: Optional[ImageInput]) -> tuple:
    """Return (width, height) of a decoded image, (0, 0) when unknown."""
    if image is None:
        return (0, 0)
    if isinstance(image, Image.Image):
        return image.size
    if isinstance(image, np.ndarray) and image.ndim >= 2:
        return (int(image.shape[1]), int(image.shape[0]))
    return (0, 0)
