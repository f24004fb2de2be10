from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    database_url: str = "sqlite:///./data/workforce.db"
    environment: str = "development"  # "development" or "production"
    log_level: str = "INFO"

    # AI judge (OpenAI chat completions in JSON mode)
    openai_api_key: str = ""
    ai_model: str = "gpt-4o-mini"
    ai_timeout_seconds: float = 60.0

    # External quota is 2 requests per minute -> one call every 30s
    ai_min_call_interval_seconds: float = 30.0
    ai_max_retries: int = 3
    ai_retry_base_delay_seconds: float = 1.0

    # Redis cache for AI judge responses
    redis_url: str = "redis://localhost:6379"
    ai_cache_enabled: bool = True

    # Background job worker
    worker_poll_interval_seconds: int = 5
    worker_max_concurrent_jobs: int = 3
    job_max_attempts: int = 3

    # Risk monitor
    risk_sweep_interval_minutes: int = 30

    # Credential encryption (64 hex chars = 32 bytes)
    encryption_key: Optional[str] = None

    # Job notification email (SMTP)
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_from: str = "Lean Workforce <no-reply@leanworkforce.local>"
    smtp_use_ssl: bool = False

    class Config:
        env_file = ".env"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@lru_cache
def get_settings() -> Settings:
    return Settings()
