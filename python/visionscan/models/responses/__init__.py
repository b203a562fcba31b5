"""
Response DTOs - API output models.
"""

from visionscan.models.responses.scan import (
    ScanResponse,
)

__all__ = [
    'ScanResponse',
]
