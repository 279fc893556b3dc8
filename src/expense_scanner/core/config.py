from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    environment: str = "dev"
    base_url: str = "http://localhost:8000"
    secret_key: str = "change-me"

    database_url: str = "sqlite:///./expense_scanner.db"

    # Shared AWS credentials (S3 storage and Textract).
    aws_region: str | None = "us-east-1"
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None

    storage_backend: Literal["local", "s3"] = "local"
    local_storage_path: Path = Path(".local_storage")

    s3_endpoint_url: str | None = None
    s3_bucket: str = "expense-tracker-receipts"

    ocr_backend: Literal["textract", "tesseract"] = "textract"
    expense_analysis_backend: Literal["textract", "disabled"] = "textract"
    tesseract_lang: str = "eng"

    receipt_max_bytes: int = 4 * 1024 * 1024
    receipt_url_ttl_seconds: int = 3600 * 24 * 7
    receipt_refresh_url_ttl_seconds: int = 3600

    init_admin_email: str | None = None
    init_admin_password: str | None = None

    access_token_exp_minutes: int = 60 * 24


settings = Settings()
