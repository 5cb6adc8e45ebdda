import enum

from pydantic_settings import BaseSettings, SettingsConfigDict

from app.data.game_config import GameConfig


class AbandonPolicy(str, enum.Enum):
    # The remaining player keeps the match open; nothing changes
    keep_waiting = "keep_waiting"
    # The remaining player is declared winner
    forfeit = "forfeit"


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./backup_deathmatch.db"

    secret_key: str = "change-me-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24

    log_level: str = "INFO"

    # Optimistic-concurrency attempts per transition before giving up
    transition_max_attempts: int = 3
    # How long a fetched memory pool is reused before hitting the DB again
    pool_cache_ttl_seconds: float = 300.0

    abandon_policy: AbandonPolicy = AbandonPolicy.keep_waiting

    game: GameConfig = GameConfig()

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )


settings = Settings()
