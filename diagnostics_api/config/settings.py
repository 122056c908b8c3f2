from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    APP_NAME: str = "Network Diagnostic Service"
    DEBUG: bool = False
    ENVIRONMENT: str = "production"

    DATABASE_URL: str = "sqlite:///./diagnostics.db"

    LOG_LEVEL: str = "INFO"

    # Shared secret expected in every inbound network-event webhook
    WEBHOOK_API_KEY: Optional[str] = None

    # Device/Account Gateway
    GATEWAY_BASE_URL: str = "http://localhost:5000/api/gateway"
    GATEWAY_TOKEN: str = ""
    GATEWAY_TIMEOUT_SECONDS: float = 10.0

    # Worker pool
    WORKERS_ENABLED: bool = False
    WORKER_CONCURRENCY: int = 4
    LEASE_TTL_SECONDS: int = 300
    PIPELINE_DEADLINE_SECONDS: float = 240.0
    JOB_MAX_RETRIES: int = 3
    JOB_RETRY_BASE_DELAY_SECONDS: float = 2.0

    # Job queue: a claim outlives the lease so a crashed run is redelivered after its lease expired
    JOB_VISIBILITY_TIMEOUT_SECONDS: float = 360.0
    JOB_POLL_INTERVAL_SECONDS: float = 1.0

    # Pipeline tuning
    NEIGHBOR_FANOUT_LIMIT: int = 5
    PING_ATTEMPTS: int = 3
    PING_RETRY_DELAY_SECONDS: float = 2.0

    SYNC_TRIGGER_TIMEOUT_SECONDS: float = 300.0

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
