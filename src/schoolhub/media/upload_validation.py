"""Upload validation utilities."""

from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass

from starlette.datastructures import UploadFile

from ..config import UploadLimits
from .media_errors import PayloadTooLargeError, UnsupportedMediaError, UploadFailedError

logger = logging.getLogger(__name__)

GENERIC_CONTENT_TYPES = frozenset({"", "application/octet-stream", "binary/octet-stream"})

_SIGNATURES: tuple[tuple[bytes, str], ...] = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
)


@dataclass(slots=True)
class ValidatedUpload:
    content_type: str
    size_bytes: int


def sniff_content_type(head: bytes) -> str | None:
    """Guess an image type from its leading bytes."""
    for signature, content_type in _SIGNATURES:
        if head.startswith(signature):
            return content_type
    if head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return "image/webp"
    return None


@dataclass(slots=True)
class UploadValidator:
    """Validate media uploads against configured limits."""

    limits: UploadLimits

    async def detect_content_type(self, upload: UploadFile) -> str:
        """Return the declared type, or infer one when the client sent a generic type.

        Inference tries the filename extension first, then the file signature.
        """
        declared = (upload.content_type or "").split(";")[0].strip().lower()
        if declared not in GENERIC_CONTENT_TYPES:
            return declared
        guessed, _ = mimetypes.guess_type(upload.filename or "")
        if guessed:
            return guessed
        head = await upload.read(16)
        await upload.seek(0)
        return sniff_content_type(head) or declared or "application/octet-stream"

    async def validate(self, upload: UploadFile) -> ValidatedUpload:
        """Check type and size; the stream is rewound afterwards."""
        content_type = await self.detect_content_type(upload)
        if content_type not in set(self.limits.allowed_content_types):
            logger.warning(
                "media.upload.unsupported_media",
                extra={
                    "content_type": content_type,
                    "declared_content_type": upload.content_type,
                    "upload_filename": upload.filename,
                },
            )
            raise UnsupportedMediaError(f"unsupported content type {content_type!r}")

        cap = self.limits.max_upload_bytes
        size = 0
        try:
            while True:
                chunk = await upload.read(self.limits.chunk_size_bytes)
                if not chunk:
                    break
                size += len(chunk)
                if size > cap:
                    logger.warning(
                        "media.upload.payload_too_large",
                        extra={"size_bytes": size, "limit_bytes": cap},
                    )
                    raise PayloadTooLargeError(f"upload exceeds {cap} bytes")
        except PayloadTooLargeError:
            raise
        except OSError as exc:
            logger.error("media.upload.read_failed", exc_info=exc)
            raise UploadFailedError(f"failed to read upload: {exc}") from exc
        finally:
            await upload.seek(0)

        if size == 0:
            raise UploadFailedError("uploaded file is empty")
        return ValidatedUpload(content_type=content_type, size_bytes=size)
