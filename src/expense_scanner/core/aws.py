from __future__ import annotations

from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from expense_scanner.core.config import settings


def aws_region() -> str:
    region = settings.aws_region
    if not region or region.lower() == "auto":
        return "us-east-1"
    return region


def aws_session() -> boto3.session.Session:
    return boto3.session.Session(
        aws_access_key_id=settings.aws_access_key_id,
        aws_secret_access_key=settings.aws_secret_access_key,
        region_name=aws_region(),
    )


def client_config(*, addressing_style: str | None = None) -> Config:
    # One attempt per call: failures fall forward to the next strategy instead.
    kwargs: dict[str, Any] = {
        "retries": {"total_max_attempts": 1, "mode": "standard"},
        "connect_timeout": 5,
        "read_timeout": 30,
    }
    if addressing_style:
        kwargs["s3"] = {"addressing_style": addressing_style}
    return Config(**kwargs)


def missing_credentials() -> list[str]:
    required = {
        "AWS_REGION": settings.aws_region,
        "AWS_ACCESS_KEY_ID": settings.aws_access_key_id,
        "AWS_SECRET_ACCESS_KEY": settings.aws_secret_access_key,
    }
    return [name for name, value in required.items() if not value]


def client_error_info(error: Exception) -> dict[str, Any]:
    payload: dict[str, Any] = {"error_type": type(error).__name__}
    if isinstance(error, ClientError):
        err = error.response.get("Error") or {}
        meta = error.response.get("ResponseMetadata") or {}
        payload["error_code"] = err.get("Code")
        payload["error_message"] = err.get("Message")
        payload["http_status"] = meta.get("HTTPStatusCode")
        payload["request_id"] = meta.get("RequestId")
        return payload
    payload["error"] = str(error)
    return payload
