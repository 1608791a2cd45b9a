from typing import List, Union
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Application
    ENVIRONMENT: str = "development"
    NAME: str = "Campus Connect"
    VERSION: str = "1.0.0"
    API_PREFIX: str = "/api/v1"
    WEB_SOCKET_PREFIX: str = "/ws"
    """Pydantic v2 doesn't support parsing List[str] from a plain comma-separated string by default anymore."""
    ALLOWED_HOSTS: Union[str, List[str]] = "http://localhost:3000,http://127.0.0.1:3000"
    LOG_LEVEL: str = "INFO"
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Database
    DATABASE_URL: str = "sqlite:///./campus_connect.db"
    DATABASE_ECHO: bool = False

    # Authentication & Security
    JWT_SECRET_KEY: str = "<your-jwt-secret-key>"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7
    BCRYPT_ROUNDS: int = 12

    # Google Sign-In
    GOOGLE_CLIENT_ID: str = "<your-google-client-id>"
    GOOGLE_TOKENINFO_URL: str = "https://oauth2.googleapis.com/tokeninfo"

    # Games
    GAME_ROOM_CODE_LENGTH: int = 6
    GAME_ROOM_CODE_MAX_ATTEMPTS: int = 10

    # Routines / free time
    FREE_TIME_WINDOW_START: str = "08:00"
    FREE_TIME_WINDOW_END: str = "22:00"
    DEFAULT_MIN_FREE_MINUTES: int = 30

    # Admin console
    ADMIN_PAGE_LIMIT_DEFAULT: int = 20
    ADMIN_PAGE_LIMIT_MAX: int = 100

    # Realtime
    REALTIME_QUEUE_SIZE: int = 100

    @field_validator("ALLOWED_HOSTS", mode="before")
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if not v:
            return []
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


settings = Settings()
