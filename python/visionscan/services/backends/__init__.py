"""
Inference backends.

- hf_pipeline.py - transformers image-classification pipeline (primary)
- onnx_fallback.py - bundled MobileNetV2 on ONNX Runtime (last resort)
- face.py - InsightFace detector + 68-point landmarks
- pose.py - YOLO multi-person pose
"""

from visionscan.services.backends.base import ClassifierBackend, ImageInput
from visionscan.services.backends.hf_pipeline import PipelineBackend, load_candidate
from visionscan.services.backends.onnx_fallback import OnnxFallbackBackend, load_fallback

__all__ = [
    'ClassifierBackend',
    'ImageInput',
    'PipelineBackend',
    'load_candidate',
    'OnnxFallbackBackend',
    'load_fallback',
]
