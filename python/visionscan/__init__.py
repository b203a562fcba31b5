"""VisionScan API - visual recognition backend."""

from visionscan.core.config import VERSION

__version__ = VERSION
