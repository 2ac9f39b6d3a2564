"""
Configuration settings for Gamification Service
"""
from functools import lru_cache
from typing import Optional, List
from zoneinfo import ZoneInfo

from pydantic import ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""
    
    # App
    APP_NAME: str = "Gamification Service"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = "local"
    LOG_LEVEL: str = "INFO"
    
    # AWS
    AWS_REGION: str = "us-east-1"
    AWS_ACCESS_KEY_ID: Optional[str] = None  # Only for LocalStack, ECS uses IAM roles
    AWS_SECRET_ACCESS_KEY: Optional[str] = None  # Only for LocalStack, ECS uses IAM roles
    
    # DynamoDB
    DYNAMODB_ENDPOINT: Optional[str] = None  # None uses AWS, set for LocalStack
    DYNAMODB_STATS_TABLE: str = "hotelops-dev-gamification-stats"
    PERSISTENCE_TIMEOUT_SECONDS: float = 3.0
    PERSISTENCE_MAX_ATTEMPTS: int = 3  # botocore retry attempts per call
    MAX_WRITE_RETRIES: int = 3  # read-modify-write retries on version conflict
    
    # Gamification
    GAMIFICATION_ENABLED: bool = True
    XP_RATE_MULTIPLIER: float = Field(default=1.0, ge=0.1, le=5.0)
    HIGH_QUALITY_THRESHOLD: float = 90.0
    BUSINESS_TIMEZONE: str = "Europe/Paris"
    IDEMPOTENCY_WINDOW: int = 50
    LEADERBOARD_LIMIT: int = 20
    
    # CORS
    CORS_ORIGINS: List[str] = ["*"]
    
    model_config = ConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )
    
    @field_validator('BUSINESS_TIMEZONE')
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Business timezone must be a valid IANA name"""
        try:
            ZoneInfo(v)
        except Exception:
            raise ValueError(f"BUSINESS_TIMEZONE must be a valid IANA timezone, got: {v}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached settings instance (singleton)"""
    return Settings()
