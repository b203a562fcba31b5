"""
Application configuration via Pydantic Settings.
Loads from environment variables with validation and defaults.
"""

from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import Field
from functools import lru_cache


VERSION = "1.0.0"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # === Server ===
    server_host: str = Field(default="0.0.0.0", alias="SERVER_HOST")
    server_port: int = Field(default=8001, alias="SERVER_PORT")
    debug: bool = Field(default=False, alias="DEBUG")

    # === Supabase (optional: the model layer runs without a database) ===
    supabase_url: Optional[str] = Field(default=None, alias="SUPABASE_URL")
    supabase_service_role_key: Optional[str] = Field(default=None, alias="SUPABASE_SERVICE_ROLE_KEY")
    supabase_jwt_secret: Optional[str] = Field(default=None, alias="SUPABASE_JWT_SECRET")

    # === CORS ===
    allowed_origins: str = Field(default="*", alias="ALLOWED_ORIGINS")

    # === Object classification backends ===
    primary_models: str = Field(
        default="apple/mobilevit-small,google/vit-base-patch16-224",
        alias="PRIMARY_MODELS"
    )
    device_priority: str = Field(default="cuda,cpu", alias="DEVICE_PRIORITY")
    fallback_model_url: str = Field(
        default="https://github.com/onnx/models/raw/main/validated/vision/classification/mobilenet/model/mobilenetv2-12.onnx",
        alias="FALLBACK_MODEL_URL"
    )
    fallback_input_size: int = Field(default=224, alias="FALLBACK_INPUT_SIZE")
    # "imagenet" (mean/std, model zoo graphs) or "unit" ([-1, 1], TF-Hub exports)
    fallback_normalization: str = Field(default="imagenet", alias="FALLBACK_NORMALIZATION")
    models_dir: str = Field(default="data/models", alias="MODELS_DIR")
    preload_models: bool = Field(default=False, alias="PRELOAD_MODELS")

    # === Recognition defaults ===
    confidence_threshold: float = Field(default=0.5, alias="CONFIDENCE_THRESHOLD")
    top_k: int = Field(default=5, alias="TOP_K")

    # === Subscriptions ===
    free_scans: int = Field(default=2, alias="FREE_SCANS")
    trial_days: int = Field(default=14, alias="TRIAL_DAYS")

    @property
    def cors_origins(self) -> List[str]:
        """Parse ALLOWED_ORIGINS into list."""
        return [origin.strip() for origin in self.allowed_origins.split(",")]

    @property
    def primary_model_ids(self) -> List[str]:
        """Parse PRIMARY_MODELS into an ordered list."""
        return [m.strip() for m in self.primary_models.split(",") if m.strip()]

    @property
    def device_order(self) -> List[str]:
        """Parse DEVICE_PRIORITY into an ordered list (fastest first)."""
        return [d.strip().lower() for d in self.device_priority.split(",") if d.strip()]

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_role_key)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"  # Ignore extra env vars


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
