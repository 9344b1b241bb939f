"""
Application configuration using Pydantic Settings
"""
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # Application
    APP_NAME: str = "Hiring Pipeline"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    # Recruiting API (candidates, candidate rounds, template activation)
    CANDIDATES_API_URL: str = "http://localhost:8001"
    # Job openings API (round templates)
    JOBS_API_URL: str = "http://localhost:8000"
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # Pagination
    CANDIDATE_PAGE_SIZE: int = Field(default=100, ge=1)

    # AI evaluation services
    RESUME_EVALUATION_URL: Optional[str] = None
    TRANSCRIPT_EVALUATION_URL: Optional[str] = None
    ASSESSMENT_EVALUATION_URL: Optional[str] = None
    SALES_EVALUATION_URL: Optional[str] = None
    SALES_ACCOUNT_ID: str = "salesai"
    EVALUATION_TIMEOUT_SECONDS: float = 120.0
    EVALUATION_BATCH_SIZE: int = Field(default=20, ge=1)
    EVALUATION_BATCH_DELAY_SECONDS: float = 2.0  # Pause between batch chunks
    EVALUATION_MAX_RETRIES: int = Field(default=3, ge=0)
    EVALUATION_RETRY_DELAY_SECONDS: float = 1.0

    # Stage advancement
    DEFAULT_CREATED_BY: str = "system"

    # Redis page cache
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_CACHE_ENABLED: bool = True
    REDIS_CACHE_TTL: int = 1800

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:3001"]
    CORS_ALLOW_CREDENTIALS: bool = True

    # Observability
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    @property
    def cors_origins_list(self) -> List[str]:
        return list(self.CORS_ORIGINS)


settings = Settings()
