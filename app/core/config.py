import json

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str

    REDIS_URL: str = "redis://redis:6379/0"

    BACKEND_CORS_ORIGINS: str = (
        '["http://localhost:5173","http://localhost:3000","http://localhost:3001"]'
    )

    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "Bundle Engine API"
    DEBUG: bool = False

    # Catalog/inventory collaborator (read-only)
    # Empty URL keeps the in-process catalog (development and tests)
    CATALOG_API_URL: str = ""
    CATALOG_TIMEOUT_SECONDS: float = 5.0

    # Bundle engine
    BUNDLE_DEFAULT_CURRENCY: str = "PLN"
    BUNDLE_RESERVATION_MAX_RETRIES: int = 3
    BUNDLE_SWEEP_BATCH_SIZE: int = 200
    BUNDLE_AUTO_EXPIRE_ENABLED: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

    @property
    def cors_origins(self) -> list[str]:
        if isinstance(self.BACKEND_CORS_ORIGINS, str):
            try:
                parsed: list[str] = json.loads(self.BACKEND_CORS_ORIGINS)
                return parsed
            except json.JSONDecodeError:
                return ["http://localhost:5173", "http://localhost:3000"]
        return self.BACKEND_CORS_ORIGINS

    @property
    def uses_remote_catalog(self) -> bool:
        return bool(self.CATALOG_API_URL)


settings = Settings()
