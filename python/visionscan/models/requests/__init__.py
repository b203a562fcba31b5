"""
Request DTOs - API input models.
Used for validating incoming API requests.
"""

from visionscan.models.requests.scan import (
    ScanRequest,
    AnalyzeRequest,
    RememberItemRequest,
)

__all__ = [
    'ScanRequest',
    'AnalyzeRequest',
    'RememberItemRequest',
]
