"""
Heuristic expression estimator.

Derives a coarse emotion from three landmark distances (mouth opening,
eyebrow-to-eye gap, eye opening). This is a rule table over geometry, not a
trained model; the thresholds are tunable constants.

Landmarks use the 68-point iBUG layout (insightface `landmark_3d_68`),
image coordinates with y growing downwards.
"""

from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from visionscan.models.domain.detection import EmotionResult

EMOTION_LABELS = ('angry', 'disgust', 'fear', 'happy', 'sad', 'surprise', 'neutral')

# Named points -> indices in the 68-point layout
LANDMARKS_68: Dict[str, Tuple[int, ...]] = {
    'upper_inner_lip': (62,),
    'lower_inner_lip': (66,),
    'left_brow': (19,),
    'right_brow': (24,),
    'left_eye_top': (37, 38),
    'left_eye_bottom': (40, 41),
    'right_eye_top': (43, 44),
    'right_eye_bottom': (46, 47),
}

# Pixel distances mapped onto [0, 1]
MOUTH_SCALE = 30.0
BROW_SCALE = 20.0
EYE_SCALE = 10.0


def _clamp01(value: float) -> float:
    return float(min(1.0, max(0.0, value)))


def _y(landmarks: np.ndarray, name: str) -> float:
    return float(np.mean([landmarks[i][1] for i in LANDMARKS_68[name]]))


def mouth_openness(landmarks: np.ndarray) -> float:
    return _clamp01((_y(landmarks, 'lower_inner_lip') - _y(landmarks, 'upper_inner_lip')) / MOUTH_SCALE)


def eyebrow_raise(landmarks: np.ndarray) -> float:
    brow_level = (_y(landmarks, 'left_brow') + _y(landmarks, 'right_brow')) / 2
    eye_level = (_y(landmarks, 'left_eye_top') + _y(landmarks, 'right_eye_top')) / 2
    return _clamp01((eye_level - brow_level) / BROW_SCALE)


def eye_openness(landmarks: np.ndarray) -> float:
    left = (_y(landmarks, 'left_eye_bottom') - _y(landmarks, 'left_eye_top')) / EYE_SCALE
    right = (_y(landmarks, 'right_eye_bottom') - _y(landmarks, 'right_eye_top')) / EYE_SCALE
    return _clamp01((left + right) / 2)


def emotion_probabilities(mouth: float, brow: float, eyes: float) -> List[float]:
    """Pseudo-probabilities in EMOTION_LABELS order."""
    return [
        0.8 if brow > 0.7 and eyes > 0.7 else 0.1,   # angry
        0.05,                                         # disgust
        0.7 if eyes > 0.8 and mouth > 0.6 else 0.1,  # fear
        0.9 if mouth > 0.5 else 0.3,                  # happy
        0.6 if brow > 0.7 else 0.2,                   # sad
        0.8 if mouth > 0.7 and eyes > 0.9 else 0.1,  # surprise
        0.3,                                          # neutral
    ]


def estimate_emotion(
    landmarks: Optional[Sequence[Sequence[float]]],
    in_view: bool = True,
) -> EmotionResult:
    """
    Estimate the dominant emotion for one face.

    A face without usable landmarks gets an all-zero vector, which reports
    the first label with probability 0.
    """
    points = np.asarray(landmarks, dtype=np.float64) if landmarks is not None else None
    usable = in_view and points is not None and points.ndim == 2 and points.shape[0] >= 68

    if usable:
        probabilities = emotion_probabilities(
            mouth_openness(points), eyebrow_raise(points), eye_openness(points)
        )
    else:
        probabilities = [0.0] * len(EMOTION_LABELS)

    best = int(np.argmax(probabilities))
    return EmotionResult(
        emotion=EMOTION_LABELS[best],
        probability=probabilities[best],
        facial_landmarks=[(float(p[0]), float(p[1])) for p in points] if usable else None,
    )
