from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """App-wide configuration pulled from environment variables or .env."""

    # Database
    db_user: str = "trends"
    db_password: str = "trends"
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "ghtrends"
    # Full SQLAlchemy URL; wins over the parts above when set (e.g. sqlite:///trends.db)
    database_url: str | None = None

    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    @property
    def db_url(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+psycopg://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )


@lru_cache()
def get_settings() -> Settings:  # pragma: no cover
    return Settings()
