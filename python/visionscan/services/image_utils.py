"""
Image decoding and normalization helpers.

Every image reaching the perception layer is converted here into a
HxWx3 uint8 RGB numpy array.
"""

import base64
import binascii
import io
import re
from typing import Union

import cv2
import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from visionscan.core.exceptions import InvalidImageError
from visionscan.services.backends.base import image_size

DATA_URL_PATTERN = re.compile(r"^data:image/[a-zA-Z0-9.+-]+;base64,", re.IGNORECASE)


def validate_image(image: Union[np.ndarray, Image.Image, None]) -> None:
    """
    Reject images that cannot be classified.

    Raises:
        InvalidImageError: missing image, zero width/height or unsupported shape
    """
    if image is None:
        raise InvalidImageError("No image provided")
    if isinstance(image, np.ndarray):
        if image.ndim not in (2, 3) or (image.ndim == 3 and image.shape[2] not in (1, 3, 4)):
            raise InvalidImageError(f"Unsupported image shape {image.shape}")
    elif not isinstance(image, Image.Image):
        raise InvalidImageError(f"Unsupported image type {type(image).__name__}")
    width, height = image_size(image)
    if width <= 0 or height <= 0:
        raise InvalidImageError(f"Image has zero dimensions ({width}x{height})")


def as_rgb_array(image: Union[np.ndarray, Image.Image]) -> np.ndarray:
    """Convert a validated image into a HxWx3 uint8 RGB array."""
    if isinstance(image, Image.Image):
        return np.asarray(image.convert("RGB"))
    array = image
    if array.dtype != np.uint8:
        array = np.clip(array, 0, 255).astype(np.uint8)
    if array.ndim == 2:
        return cv2.cvtColor(array, cv2.COLOR_GRAY2RGB)
    if array.shape[2] == 1:
        return cv2.cvtColor(array[:, :, 0], cv2.COLOR_GRAY2RGB)
    if array.shape[2] == 4:
        return cv2.cvtColor(array, cv2.COLOR_RGBA2RGB)
    return array


def decode_image_bytes(data: bytes) -> np.ndarray:
    """
    Decode JPEG/PNG/WebP bytes into an RGB array, honoring EXIF orientation.

    Raises:
        InvalidImageError: empty or undecodable payload
    """
    if not data:
        raise InvalidImageError("Empty image payload")
    try:
        image = Image.open(io.BytesIO(data))
        image = ImageOps.exif_transpose(image)
        array = np.asarray(image.convert("RGB"))
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise InvalidImageError(f"Could not decode image: {e}") from e
    validate_image(array)
    return array


def decode_data_url(value: str) -> np.ndarray:
    """
    Decode a `data:image/...;base64,` URL or bare base64 string.

    Raises:
        InvalidImageError: not valid base64 or not an image
    """
    if not value:
        raise InvalidImageError("Empty image payload")
    payload = DATA_URL_PATTERN.sub("", value.strip(), count=1)
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidImageError(f"Invalid base64 image: {e}") from e
    return decode_image_bytes(data)


def resize_to_fit(image: np.ndarray, max_width: int, max_height: int) -> np.ndarray:
    """Shrink an image to fit max_width x max_height, keeping aspect ratio."""
    height, width = image.shape[:2]
    scale = min(max_width / width, max_height / height, 1.0)
    if scale >= 1.0:
        return image
    new_size = (max(1, int(round(width * scale))), max(1, int(round(height * scale))))
    return cv2.resize(image, new_size, interpolation=cv2.INTER_AREA)


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """Average the RGB channels, keeping a 3-channel layout."""
    mean = image.astype(np.float32).mean(axis=2)
    gray = np.round(mean).astype(np.uint8)
    return np.stack([gray, gray, gray], axis=2)


def encode_jpeg_data_url(image: np.ndarray, quality: int = 90) -> str:
    """Encode an RGB array as a JPEG data URL."""
    buffer = io.BytesIO()
    Image.fromarray(image).save(buffer, format="JPEG", quality=quality)
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/jpeg;base64,{encoded}"
