"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings

# ===========================================
# Product Branding
# ===========================================
PRODUCT_NAME = "Underwriter"
PRODUCT_TAGLINE = "Auditable decision tables for insurance risk."
PRODUCT_VERSION = "1.0.0"
PRODUCT_DESCRIPTION = "Define the tables. Underwriter evaluates every applicant the same way."

# Decision model shipped with the package
DEFAULT_MODEL_PATH = Path(__file__).parent / "models" / "insurance_risk_assessment.yaml"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database (audit trail)
    database_url: str = "sqlite:///./underwriter.db"

    # Decision model
    model_path: str = str(DEFAULT_MODEL_PATH)

    # Listeners
    log_evaluations: bool = True
    audit_enabled: bool = False

    # Logging
    log_level: str = "INFO"

    # API Security
    api_key: str = ""  # Set in .env for production
    rate_limit: str = "120/minute"

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
