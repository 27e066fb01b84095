"""
Application settings.

Loads configuration from environment variables using pydantic-settings.
"""

from decimal import Decimal

from loguru import logger
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str
    database_echo: bool = False

    # Redis (for Dramatiq)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str | None = None
    redis_db: int = 0

    # Application
    environment: str = "production"
    debug: bool = False
    log_level: str = "INFO"
    log_file: str | None = "logs/referral_ledger.log"
    frontend_url: str = "http://localhost:3000"
    health_host: str = "0.0.0.0"
    health_port: int = 8081

    # Reward table (fixed amounts, not percentages)
    welcome_bonus_points: int = Field(
        default=20, ge=0,
        description="Points granted to the new user on the first qualifying event"
    )
    agent_tier1_reward: Decimal = Field(
        default=Decimal("5"), ge=0,
        description="Money reward for a property agent's direct referral"
    )
    agent_tier2_reward: Decimal = Field(
        default=Decimal("2"), ge=0,
        description="Money reward for a property agent's indirect referral"
    )
    customer_tier1_points: int = Field(
        default=100, ge=0,
        description="Points reward for a customer's direct referral"
    )
    customer_tier2_points: int = Field(
        default=50, ge=0,
        description="Points reward for a customer's indirect referral"
    )

    # Payouts
    minimum_payout_amount: Decimal = Field(
        default=Decimal("50"), gt=0,
        description="Minimum approved commission total before a payout is created"
    )
    payout_cycle_hour: int = Field(
        default=2, ge=0, le=23,
        description="UTC hour at which the daily payout cycle runs"
    )

    # Referral codes
    referral_code_max_attempts: int = Field(
        default=10, ge=1,
        description="Candidate codes tried before giving up"
    )

    # Fraud scoring
    fraud_detection_threshold: int = Field(
        default=70, ge=0, le=100,
        description="Risk score at which a fraud detection record is created"
    )
    fraud_critical_threshold: int = Field(
        default=90, ge=0, le=100,
        description="Risk score at which severity escalates to CRITICAL"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode='after')
    def validate_reward_tiers(self) -> 'Settings':
        """Indirect referrals must never pay more than direct ones."""
        if self.agent_tier2_reward > self.agent_tier1_reward:
            raise ValueError(
                'AGENT_TIER2_REWARD must not exceed AGENT_TIER1_REWARD'
            )
        if self.customer_tier2_points > self.customer_tier1_points:
            raise ValueError(
                'CUSTOMER_TIER2_POINTS must not exceed CUSTOMER_TIER1_POINTS'
            )
        return self

    @model_validator(mode='after')
    def validate_fraud_thresholds(self) -> 'Settings':
        """Critical threshold sits at or above the detection threshold."""
        if self.fraud_critical_threshold < self.fraud_detection_threshold:
            raise ValueError(
                'FRAUD_CRITICAL_THRESHOLD must be >= FRAUD_DETECTION_THRESHOLD'
            )
        return self

    @model_validator(mode='after')
    def validate_production(self) -> 'Settings':
        """Validate production-specific requirements."""
        if self.environment == 'production':
            if self.debug:
                raise ValueError(
                    'DEBUG must be False in production environment. '
                    'Set DEBUG=false in your .env file.'
                )
            if self.database_url.startswith('sqlite'):
                raise ValueError(
                    'SQLite is only supported for tests. '
                    'Set DATABASE_URL to a postgresql+asyncpg:// URL.'
                )
            if 'localhost' in self.frontend_url:
                logger.warning(
                    f'FRONTEND_URL points to {self.frontend_url} in production. '
                    'Referral links will not be reachable by invitees.'
                )
        return self

    @field_validator('database_url')
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL uses an async driver."""
        if not v.startswith(('postgresql+asyncpg://', 'sqlite+aiosqlite://')):
            raise ValueError(
                'DATABASE_URL must start with postgresql+asyncpg:// '
                'or sqlite+aiosqlite://'
            )
        return v

    @field_validator('frontend_url')
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize frontend URL for link building."""
        return v.rstrip('/')


# Global settings instance
settings = Settings()
