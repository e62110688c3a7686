from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # Application settings
    APP_NAME: str = "School Library"
    ENVIRONMENT: str = "development"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 9000
    FRONTEND_URL: str = "http://localhost:5173"

    # Database settings
    DB_BACKEND: str = "sqlite"  # sqlite or postgres
    SQLITE_PATH: str = "./school_library.db"
    POSTGRES_USER: str = "library"
    POSTGRES_PASSWORD: str = "library"
    POSTGRES_DB: str = "school_library"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    SQL_ECHO: bool = False  # Set to True for SQL query debugging

    # Circulation settings
    DEFAULT_LOAN_DAYS: int = 14
    AUDIT_USER_ID: str = "librarian"  # No real identity behind audit entries yet

    # Capability check for destructive endpoints (disabled when unset)
    LIBRARY_PIN: Optional[str] = None

    # Import settings
    MAX_IMPORT_SIZE: int = 10 * 1024 * 1024  # 10MB

    @property
    def DATABASE_URL(self) -> str:
        if self.DB_BACKEND == "postgres":
            return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        return f"sqlite+aiosqlite:///{self.SQLITE_PATH}"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
