from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # App
    APP_NAME: str = "Memory Market Simulator"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Snapshot documents (prices.json, chances.json, ...) live here
    DATA_DIR: str = "./data"

    # Economy
    STARTING_CASH: float = 1240.0
    MAX_SKIP_SESSIONS: int = 20
    ORDER_HISTORY_LIMIT: int = 500
    ACTIVITY_FEED_LIMIT: int = 500

    # Unset = unseeded PRNG (non-reproducible demo)
    RANDOM_SEED: int | None = None

    # Comma-separated list of allowed CORS origins
    ALLOWED_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173"

    @property
    def allowed_origins(self) -> list[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]


settings = Settings()
