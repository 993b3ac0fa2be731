from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    supabase_url: str = "https://localhost:54321"
    supabase_anon_key: str = ""
    presign_endpoint: str | None = None
    jobs_table: str = "widget_jobs"
    http_timeout_seconds: int = 30

    job_store: str = "rest"
    db_host: str = "localhost"
    db_port: int = 5432
    db_database: str = "widget_factory"
    db_username: str = "widget_factory"
    db_password: str = "secret"

    anon_id_path: Path = Path.home() / ".widget_factory" / "anon_id"

    locate_limit: int = 5
    locate_time_window_ms: int = 60_000
    fallback_before_ms: int = 10_000
    fallback_after_ms: int = 60_000
    trigger_propagation_delay_ms: int = 1_500
    locate_retry_delay_ms: int = 3_000

    poll_interval_ms: int = 2_000
    max_poll_attempts: int = 150
    max_consecutive_poll_failures: int = 10

    @property
    def resolved_presign_endpoint(self) -> str:
        """Explicit presign endpoint, or the edge function under supabase_url."""
        if self.presign_endpoint:
            return self.presign_endpoint
        return f"{self.supabase_url.rstrip('/')}/functions/v1/presign"

    @property
    def rest_base_url(self) -> str:
        return f"{self.supabase_url.rstrip('/')}/rest/v1"
