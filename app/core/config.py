from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # Postgres in production (postgresql+asyncpg://...), SQLite for local dev and tests
    DATABASE_URL: str = "sqlite+aiosqlite:///./workflow.db"

    # If DEV and you hit SSL cert issues on Windows, set DB_SSL_VERIFY=false in .env
    DB_SSL_VERIFY: bool = True

    SECRET_KEY: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # --- WORKFLOW ENGINE ---
    REPOSITORY_TIMEOUT_SECONDS: float = 5.0
    MIN_REJECTION_REASON_LENGTH: int = 1

    # Granted super_admin on startup when set (bootstrap only)
    SEED_SUPER_ADMIN_USER_ID: str | None = None

    LOG_LEVEL: str = "INFO"
    ENV: str = "dev"  # "dev" or "prod"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

settings = Settings()
