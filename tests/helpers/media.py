"""Shared builders for media slot tests."""

from __future__ import annotations

from datetime import datetime, timezone
from io import BytesIO

from starlette.datastructures import Headers, UploadFile

from src.schoolhub.config import UploadLimits

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def make_upload(
    data: bytes = PNG_BYTES, *, filename: str = "photo.png", content_type: str = "image/png"
) -> UploadFile:
    return UploadFile(
        file=BytesIO(data),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


def build_limits(**overrides) -> UploadLimits:
    values = dict(
        allowed_content_types=("image/jpeg", "image/png", "image/webp", "image/gif"),
        max_upload_bytes=1024 * 1024,
        chunk_size_bytes=16,
        upload_timeout_seconds=5.0,
    )
    values.update(overrides)
    return UploadLimits(**values)
