"""
Core package - foundation for the application.

Modules:
- config.py - Application settings via Pydantic Settings
- exceptions.py - Custom exception hierarchy
- responses.py - Unified API response format
- logging.py - Centralized logging configuration
"""

from visionscan.core.config import settings, VERSION
from visionscan.core.exceptions import (
    AppException,
    ValidationError,
    InvalidImageError,
    BackendError,
    DeviceUnavailableError,
    ModelFetchError,
    AllBackendsExhaustedError,
    NotInitializedError,
    DatabaseError,
    AuthenticationError,
)
from visionscan.core.responses import ApiResponse

__all__ = [
    'settings',
    'VERSION',
    'AppException',
    'ValidationError',
    'InvalidImageError',
    'BackendError',
    'DeviceUnavailableError',
    'ModelFetchError',
    'AllBackendsExhaustedError',
    'NotInitializedError',
    'DatabaseError',
    'AuthenticationError',
    'ApiResponse',
]
