"""
API routers.

Structure:
- model_admin.py: /api/models/status, /api/models/initialize
- scan.py: /api/scan, /api/scan/upload, /api/analyze
- objects.py: /api/objects/{label}/info, /api/objects/{label}/details, /api/objects/remember
- history.py: /api/history
- subscription.py: /api/subscription, /trial, /subscribe
"""

from .dependencies import set_services
from . import model_admin, scan, objects, history, subscription

__all__ = [
    'set_services',
    'model_admin',
    'scan',
    'objects',
    'history',
    'subscription',
]
