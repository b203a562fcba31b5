"""
Scan request models.
"""

from pydantic import BaseModel, Field


class ScanRequest(BaseModel):
    """Classify a captured frame."""

    image: str = Field(..., description="Image as data URL or bare base64")
    save_to_history: bool = Field(True, description="Save the result for authenticated users")


class AnalyzeRequest(BaseModel):
    """Run objects, emotions and poses on one frame."""

    image: str = Field(..., description="Image as data URL or bare base64")


class RememberItemRequest(BaseModel):
    """User-supplied name for an object the model could not identify."""

    name: str = Field(..., min_length=1, max_length=100)
