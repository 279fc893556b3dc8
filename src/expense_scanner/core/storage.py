from __future__ import annotations

import mimetypes
import os
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import urlencode

from expense_scanner.core.aws import aws_session, client_config, client_error_info
from expense_scanner.core.config import settings
from expense_scanner.core.logging import get_logger, log_event, log_exception, monotonic_ms
from expense_scanner.core.security import create_object_token

logger = get_logger(__name__)


class StorageError(RuntimeError):
    pass


@dataclass(frozen=True)
class StoredObject:
    key: str
    byte_size: int


class ObjectStorage:
    """Key/value blob store for receipt files.

    Implementations make a single attempt per call; callers decide on fallbacks.
    """

    backend = "unknown"

    def put(
        self,
        *,
        key: str,
        body: bytes,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> StoredObject:  # pragma: no cover
        raise NotImplementedError

    def get(self, *, key: str) -> bytes:  # pragma: no cover
        raise NotImplementedError

    def delete(self, *, key: str) -> None:  # pragma: no cover
        raise NotImplementedError

    def signed_url(self, *, key: str, expires_seconds: int) -> str:  # pragma: no cover
        raise NotImplementedError

    @contextmanager
    def _logged(
        self, op: str, *, key: str, error: str | None = None, **fields: Any
    ) -> Iterator[None]:
        """Log ``storage.<op>.failure`` on error; wrap it in StorageError when ``error`` is set."""
        start = time.monotonic()
        try:
            yield
        except Exception as e:
            log_exception(
                logger,
                f"storage.{op}.failure",
                backend=self.backend,
                storage_key=key,
                duration_ms=monotonic_ms(start),
                **fields,
            )
            if error is None or isinstance(e, StorageError):
                raise
            raise StorageError(f"{error}: {e}") from e


class LocalObjectStorage(ObjectStorage):
    """Files under a root directory; signed URLs point back at this API."""

    backend = "local"

    def __init__(self, root: Path):
        self._root = root
        self._root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        path = (self._root / key).resolve()
        if self._root.resolve() not in path.parents:
            raise StorageError(f"Invalid key: {key}")
        return path

    def put(
        self,
        *,
        key: str,
        body: bytes,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> StoredObject:
        start = time.monotonic()
        with self._logged("put", key=key, error="Failed to write receipt", byte_size=len(body)):
            path = self._path(key)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(body)
        log_event(
            logger,
            "storage.put.success",
            backend=self.backend,
            storage_key=key,
            byte_size=len(body),
            content_type=content_type,
            duration_ms=monotonic_ms(start),
        )
        return StoredObject(key=key, byte_size=len(body))

    def get(self, *, key: str) -> bytes:
        path = self._path(key)
        if not path.exists():
            raise StorageError(f"Object not found: {key}")
        with self._logged("get", key=key, error="Failed to read receipt"):
            return path.read_bytes()

    def delete(self, *, key: str) -> None:
        path = self._path(key)
        if not path.exists():
            return
        with self._logged("delete", key=key, error="Failed to delete receipt"):
            path.unlink()

    def signed_url(self, *, key: str, expires_seconds: int) -> str:
        token = create_object_token(key=key, expires_seconds=expires_seconds)
        return f"{settings.base_url.rstrip('/')}/api/receipts/object?{urlencode({'token': token})}"


class S3ObjectStorage(ObjectStorage):
    backend = "s3"

    def __init__(self) -> None:
        # Client creation makes no network call; an empty endpoint means AWS itself.
        self._client = aws_session().client(
            "s3",
            endpoint_url=settings.s3_endpoint_url or None,
            config=client_config(addressing_style="virtual"),
        )
        self._bucket = settings.s3_bucket

    def put(
        self,
        *,
        key: str,
        body: bytes,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> StoredObject:
        start = time.monotonic()
        params: dict[str, Any] = {"Bucket": self._bucket, "Key": key, "Body": body}
        if content_type:
            params["ContentType"] = content_type
        if metadata:
            params["Metadata"] = metadata
        with self._logged(
            "put", key=key, error="Failed to upload receipt to S3", byte_size=len(body)
        ):
            self._client.put_object(**params)
        log_event(
            logger,
            "storage.put.success",
            backend=self.backend,
            storage_key=key,
            byte_size=len(body),
            content_type=content_type,
            duration_ms=monotonic_ms(start),
        )
        return StoredObject(key=key, byte_size=len(body))

    def get(self, *, key: str) -> bytes:
        with self._logged("get", key=key, error=f"Object not found: {key}"):
            resp = self._client.get_object(Bucket=self._bucket, Key=key)
            return resp["Body"].read()

    def delete(self, *, key: str) -> None:
        with self._logged("delete", key=key, error="Failed to delete receipt from S3"):
            self._client.delete_object(Bucket=self._bucket, Key=key)

    def signed_url(self, *, key: str, expires_seconds: int) -> str:
        with self._logged("sign", key=key, error="Failed to generate signed URL"):
            return self._client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self._bucket, "Key": key},
                ExpiresIn=expires_seconds,
            )

    def head_bucket(self) -> None:
        self._client.head_bucket(Bucket=self._bucket)


_storage: ObjectStorage | None = None


def _local_root() -> Path:
    root = settings.local_storage_path
    return root if root.is_absolute() else Path(os.getcwd()) / root


def get_storage() -> ObjectStorage:
    global _storage  # noqa: PLW0603
    if _storage is None:
        if settings.storage_backend == "s3":
            _storage = S3ObjectStorage()
        else:
            _storage = LocalObjectStorage(_local_root())
    return _storage


def guess_content_type(key: str) -> str:
    guessed, _ = mimetypes.guess_type(key)
    return guessed or "application/octet-stream"


def _write_probe(storage: ObjectStorage) -> dict[str, Any]:
    key = f"diagnostics/healthz/{uuid.uuid4()}.txt"
    body = b"ok"
    try:
        storage.put(key=key, body=body, content_type="text/plain")
        out = storage.get(key=key)
        storage.delete(key=key)
    except Exception as e:  # noqa: BLE001
        return {"ok": False, "key": key, **client_error_info(e.__cause__ or e)}
    return {"ok": out == body, "key": key, "byte_size": len(body)}


def diagnose_storage(*, write_test: bool = False) -> dict[str, Any]:
    """
    Connectivity diagnostics for the configured storage backend.

    Never returns credentials. ``write_test`` round-trips a small object.
    """
    if settings.storage_backend == "s3":
        result: dict[str, Any] = {
            "ok": True,
            "backend": "s3",
            "bucket": settings.s3_bucket,
            "endpoint_url": settings.s3_endpoint_url or None,
        }
        if not settings.aws_access_key_id or not settings.aws_secret_access_key:
            return {**result, "ok": False, "error": "missing_aws_credentials"}
        storage: ObjectStorage = S3ObjectStorage()
        start = time.monotonic()
        try:
            storage.head_bucket()
        except Exception as e:  # noqa: BLE001
            result["ok"] = False
            result["head_bucket"] = {
                "ok": False,
                "duration_ms": monotonic_ms(start),
                **client_error_info(e),
            }
            return result
        result["head_bucket"] = {"ok": True, "duration_ms": monotonic_ms(start)}
    else:
        storage = LocalObjectStorage(_local_root())
        result = {"ok": True, "backend": "local", "root": str(_local_root())}

    if write_test:
        result["write_test"] = _write_probe(storage)
        result["ok"] = result["ok"] and result["write_test"]["ok"]
    return result
