from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    APP_NAME: str = "TILLPOINT"
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    DATABASE_URL: str = "sqlite+pysqlite:///./tillpoint.db"
    DEFAULT_TENANT_NAME: str = "Default Tenant"
    DEFAULT_STORE_NAME: str = "Default Store"
    DEFAULT_TERMINAL_CODE: str = "TERMINAL_001"
    SUPERADMIN_USERNAME: str = "superadmin"
    SUPERADMIN_EMAIL: str = "superadmin@example.com"
    SUPERADMIN_PASSWORD: str = "change-me"
    TILL_MOVEMENTS_MAX_PAGE_SIZE: int = 500
    OPS_ENABLE_INTEGRITY_SCAN: bool = True
    METRICS_ENABLED: bool = True
    LOG_LEVEL: str = "INFO"

settings = Settings()
