# pharmapricing/core/config.py

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

# .env values must be in the environment before Settings reads it
load_dotenv()


class Settings(BaseSettings):
    """
    Application settings, loaded from environment variables.
    """
    # --- Database ---
    DATABASE_URL: str = "sqlite:///./pricing.db"
    SQL_ECHO: bool = False

    # --- JWT (tokens are issued by the identity service) ---
    SECRET_KEY: str = "super-secret-key-that-should-be-in-env"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    TOKEN_URL: str = "token"

    # --- Logging ---
    LOG_LEVEL: str = "INFO"

    # --- Promotions ---
    # How many times a conflicting promotion application is re-validated
    # and retried before giving up with `promotion_exhausted`.
    PROMOTION_APPLY_MAX_RETRIES: int = 5

    model_config = SettingsConfigDict(case_sensitive=True)


# Single settings instance shared by the whole application.
settings = Settings()
