"""
Application Settings Configuration
"""

from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Dict, List, Literal


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Vendor gateway
    # Base URL shared by every protocol variant (MemeFast-style aggregator or a direct vendor host)
    vendor_base_url: str = Field(default="https://api.memefast.top")

    # Comma-separated API keys, tried in order and rotated on auth/rate-limit failures
    vendor_api_keys: str = Field(default="")

    # Default video model identifier
    video_model: str = Field(default="doubao-seedance-1-0-pro-250528")

    # Capability metadata: model id -> supported endpoint type tags (JSON in env)
    model_endpoint_types: Dict[str, List[str]] = Field(default_factory=dict)

    # Polling
    poll_interval_s: float = Field(default=5.0)
    max_poll_attempts: int = Field(default=180)
    not_found_grace_attempts: int = Field(default=3)

    # HTTP
    request_timeout_s: float = Field(default=60.0)

    # Number of shot groups generated at the same time
    generation_concurrency: int = Field(default=1)

    # Application
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")

    @property
    def api_key_list(self) -> List[str]:
        """Configured API keys in rotation order"""
        return [key.strip() for key in self.vendor_api_keys.split(",") if key.strip()]

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
