from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    APP_NAME: str = "InventSight Transfers"
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    DATABASE_URL: str = "sqlite+pysqlite:///./inventsight.db"
    METRICS_ENABLED: bool = True
    GM_PLUS_ROLES: list[str] = ["OWNER", "GENERAL_MANAGER", "CEO", "FOUNDER", "ADMIN"]
    TRANSFER_REJECTION_REASON_MIN_LENGTH: int = 10
    TRANSFERS_DEFAULT_PAGE_SIZE: int = 20
    TRANSFERS_MAX_PAGE_SIZE: int = 100
    TRANSFERS_SUMMARY_TOP_N: int = 5
    # Quantity columns are signed 32-bit.
    TRANSFERS_MAX_QUANTITY: int = 1_000_000

settings = Settings()
