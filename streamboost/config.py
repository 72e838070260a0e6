import os
from dotenv import load_dotenv

load_dotenv()

class Settings:
    APP_NAME: str = os.getenv("APP_NAME", "StreamBoost")
    # Core settings
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development").lower()
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./streamboost.db")

    # Quota accounting: "daily" resets every calendar day, "period" pools the whole subscription
    QUOTA_POLICY: str = os.getenv("QUOTA_POLICY", "daily").lower()

    # Scheduling rules
    STREAM_CONFLICT_BUFFER_MINUTES: int = int(os.getenv("STREAM_CONFLICT_BUFFER_MINUTES", "30"))
    STREAM_EARLY_START_MINUTES: int = int(os.getenv("STREAM_EARLY_START_MINUTES", "15"))
    STREAM_MIN_DURATION_MINUTES: int = int(os.getenv("STREAM_MIN_DURATION_MINUTES", "1"))
    STREAM_MAX_DURATION_MINUTES: int = int(os.getenv("STREAM_MAX_DURATION_MINUTES", "480"))

    # Plans & subscriptions
    DEFAULT_PLAN_DURATION_DAYS: int = int(os.getenv("DEFAULT_PLAN_DURATION_DAYS", "30"))
    SEED_DEFAULT_PLANS: bool = os.getenv("SEED_DEFAULT_PLANS", "true").lower() == "true"

    # Discord notifications
    DISCORD_WEBHOOK_URL: str = os.getenv("DISCORD_WEBHOOK_URL", "")
    DISCORD_TIMEOUT_SECONDS: int = int(os.getenv("DISCORD_TIMEOUT_SECONDS", "10"))

settings = Settings()
