from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    DATABASE_URL: str = "sqlite+aiosqlite:///./frostline.db"
    RISK_SCORING_CONFIG: str = "config/risk_scoring.yaml"
    LOG_LEVEL: str = "INFO"
    # Connection pool (ignored for SQLite)
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_ECHO: bool = False
    # Upper bounds on time-series rows pulled per scoring call
    GPS_READING_LIMIT: int = 500
    TRIP_READING_LIMIT: int = 5000
    # Batch scoring fan-out
    SCORING_CONCURRENCY: int = 8
    # Run a scoring call's factor queries concurrently
    PARALLEL_FACTORS: bool = True


settings = Settings()
