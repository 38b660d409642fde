from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="TACTICS_", extra="ignore")

    database_url: str = "sqlite+aiosqlite:///./tactics.db"
    secret_key: str = "change-me-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24
    cors_origins: list[str] = ["http://localhost:8000", "http://127.0.0.1:8000"]

    # Turn resolution
    max_steps_cap: int = 10
    damage_spread_pct: float = 0.10
    idempotency_ttl_seconds: float = 15.0

    log_level: str = "INFO"


settings = Settings()
