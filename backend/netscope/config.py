from pydantic_settings import BaseSettings
import secrets


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "NetScope Telemetry"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    SECRET_KEY: str = secrets.token_urlsafe(64)
    ALLOWED_ORIGINS: str = "http://localhost:3000"

    # Database
    DATABASE_URL: str = "postgresql+asyncpg://netscope:netscope@db:5432/netscope"

    # SNMP defaults (used when a device carries no credentials of its own)
    SNMP_COMMUNITY: str = "public"
    SNMP_VERSION: str = "2c"
    SNMP_PORT: int = 161
    SNMP_TIMEOUT: int = 5
    SNMP_RETRIES: int = 3
    SNMP_MAX_REPETITIONS: int = 25
    SNMP_WALK_TIMEOUT: int = 60  # wall-clock seconds for a single subtree walk

    # Polling
    SNMP_POLL_INTERVAL_SECONDS: int = 60
    POLL_BATCH_SIZE: int = 10
    COUNTER_MAX_AGE_SECONDS: int = 600  # older counter pairs yield no rate

    # Aggregation schedule (UTC)
    AGGREGATION_HOURLY_MINUTE: int = 5
    DAILY_TASKS_HOUR: int = 0
    DAILY_TASKS_MINUTE: int = 30

    # Retention
    RETENTION_RAW_DAYS: int = 30
    RETENTION_HOURLY_DAYS: int = 365
    RETENTION_DAILY_DAYS: int = 1095
    ALARM_RETENTION_DAYS: int = 90

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
