"""
Services package - business logic layer.

Modules:
- model_controller.py - ordered backend cascade, classify dispatch
- perception.py - objects + emotions + poses on one image
- emotion.py - landmark-based expression heuristic
- object_info.py - descriptions for recognized labels
- history_service.py / subscription_service.py - Supabase-backed account data
- auth.py - Supabase JWT dependencies
"""

from visionscan.services.model_controller import ModelController, ProgressReporter, get_model_controller
from visionscan.services.perception import PerceptionService, get_perception_service

__all__ = [
    'ModelController',
    'ProgressReporter',
    'get_model_controller',
    'PerceptionService',
    'get_perception_service',
]
