"""
Domain models - core business entities.

These are the source of truth for data structures.
All other layers (requests, responses, services) derive from these.
"""

from visionscan.models.domain.detection import (
    ExecutionDevice,
    BackendCandidate,
    LoadPhase,
    Detection,
    ModelStatus,
    EmotionResult,
    Keypoint,
    PoseResult,
    Analysis,
)
from visionscan.models.domain.account import (
    ScanRecord,
    SubscriptionStatus,
    Subscription,
    Property,
    ItemDetails,
)

__all__ = [
    'ExecutionDevice',
    'BackendCandidate',
    'LoadPhase',
    'Detection',
    'ModelStatus',
    'EmotionResult',
    'Keypoint',
    'PoseResult',
    'Analysis',
    'ScanRecord',
    'SubscriptionStatus',
    'Subscription',
    'Property',
    'ItemDetails',
]
