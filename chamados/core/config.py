import os
from functools import lru_cache
from pathlib import Path
from typing import List

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes"}


class Settings:
    def __init__(self) -> None:
        base_dir = Path(__file__).resolve().parent.parent.parent
        self.APP_NAME: str = os.getenv("APP_NAME", "Chamados RPA API")
        self.ENV: str = os.getenv("ENV", "development")
        self.SQLALCHEMY_DATABASE_URI: str = os.getenv(
            "SQLALCHEMY_DATABASE_URI",
            f"sqlite:///{(base_dir / 'chamados.db').as_posix()}",
        )

        self.AZURE_AD_TENANT_ID: str = os.getenv("AZURE_AD_TENANT_ID", "common")
        self.AZURE_AD_CLIENT_ID: str = os.getenv("AZURE_AD_CLIENT_ID", "")
        self.AZURE_AD_VERIFY_SIGNATURE: bool = _env_flag("AZURE_AD_VERIFY_SIGNATURE", "false")
        self.AZURE_AD_JWKS_CACHE_SECONDS: int = int(os.getenv("AZURE_AD_JWKS_CACHE_SECONDS", "3600"))

        self.ADMIN_EMAIL: str = os.getenv("ADMIN_EMAIL", "").strip().lower()
        self.ADMIN_AUTO_GRANT: bool = _env_flag("ADMIN_AUTO_GRANT", "true")

        default_cors = [
            "http://localhost",
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5173",
        ]
        cors_origins = os.getenv("BACKEND_CORS_ORIGINS")
        self.BACKEND_CORS_ORIGINS: List[str] = (
            [origin.strip() for origin in cors_origins.split(",") if origin.strip()]
            if cors_origins
            else default_cors
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
