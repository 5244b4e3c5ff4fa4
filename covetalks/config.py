"""
Application Configuration Management

Loads configuration from environment variables (and an optional .env file).
Stripe price ids are optional here: a missing price id only fails the
checkout request that needs it.
"""

from functools import lru_cache
from typing import Dict, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PLAN_TYPES = ("Standard", "Plus", "Premium")
BILLING_PERIODS = ("Monthly", "Yearly")


class Settings(BaseSettings):
    """Application settings with validation"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: str = Field(default="development", description="Environment name")

    # Application
    app_name: str = Field(default="CoveTalks API")
    app_version: str = Field(default="1.0.0")
    log_level: str = Field(default="INFO")
    app_url: str = Field(default="http://localhost:3000", description="Public base URL")

    # FastAPI
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    # Supabase
    supabase_url: Optional[str] = Field(default=None, description="Supabase project URL")
    supabase_service_key: Optional[str] = Field(
        default=None, description="Supabase service-role key (server side only)"
    )

    # Stripe
    stripe_secret_key: Optional[str] = Field(default=None, description="Stripe secret API key")
    stripe_webhook_secret: Optional[str] = Field(default=None, description="Stripe webhook signing secret")
    stripe_api_version: str = Field(default="2024-06-20")

    stripe_price_standard_monthly: Optional[str] = Field(default=None)
    stripe_price_standard_yearly: Optional[str] = Field(default=None)
    stripe_price_plus_monthly: Optional[str] = Field(default=None)
    stripe_price_plus_yearly: Optional[str] = Field(default=None)
    stripe_price_premium_monthly: Optional[str] = Field(default=None)
    stripe_price_premium_yearly: Optional[str] = Field(default=None)

    # Sessions
    session_cookie_max_age: int = Field(default=3600, description="Session cookie lifetime in seconds")
    session_refresh_margin: int = Field(
        default=300, description="Refresh access tokens expiring within this many seconds"
    )

    # Auto-login tokens issued by the marketing site
    auth_secret: Optional[str] = Field(default=None, description="HS256 secret for auto-login tokens")
    auto_login_token_ttl: int = Field(default=300, description="Auto-login token validity (5 minutes)")

    # Redis (used-token store)
    redis_url: Optional[str] = Field(default=None)

    # CORS
    cors_origins: List[str] = Field(default=["http://localhost:3000"])
    cors_allow_credentials: bool = Field(default=True)
    cors_allow_methods: List[str] = Field(default=["GET", "POST", "PATCH", "DELETE"])
    cors_allow_headers: List[str] = Field(default=["*"])

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v_upper

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment"""
        valid_envs = ["development", "test", "staging", "production"]
        v_lower = v.lower()
        if v_lower not in valid_envs:
            raise ValueError(f"Environment must be one of {valid_envs}")
        return v_lower

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def price_ids(self) -> Dict[str, Dict[str, Optional[str]]]:
        """Plan -> billing period -> Stripe price id (None when unset)"""
        return {
            "Standard": {
                "Monthly": self.stripe_price_standard_monthly,
                "Yearly": self.stripe_price_standard_yearly,
            },
            "Plus": {
                "Monthly": self.stripe_price_plus_monthly,
                "Yearly": self.stripe_price_plus_yearly,
            },
            "Premium": {
                "Monthly": self.stripe_price_premium_monthly,
                "Yearly": self.stripe_price_premium_yearly,
            },
        }

    def price_id_for(self, plan: str, period: str) -> Optional[str]:
        return self.price_ids.get(plan, {}).get(period)


@lru_cache()
def get_settings() -> Settings:
    """Get application settings (cached)"""
    return Settings()
