from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///trainloop.db"
    APP_ENV: str = "local"
    LOG_LEVEL: str = "INFO"
    DEFAULT_DAY_TRANSITION_HOUR: int = 3

    model_config = SettingsConfigDict(
        env_prefix="TRAINLOOP_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
