"""Derive storage object keys from public asset URLs.

Callers often only hold the URL of an asset (query parameters, legacy rows).
:class:`ObjectKeyResolver` tries a chain of strategies and returns the first
key any of them produces.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Protocol, Sequence
from urllib.parse import unquote, urlsplit

from ..media.media_errors import NotResolvableError

logger = logging.getLogger(__name__)

PUBLIC_OBJECT_PREFIX = "/storage/v1/object/public/"

_BROKEN_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


class KeyStrategy(Protocol):
    name: str

    def extract(self, url: str) -> str | None:
        ...


def percent_decode(value: str) -> str | None:
    """Strictly percent-decode ``value``; ``None`` on malformed input."""
    if _BROKEN_ESCAPE.search(value):
        return None
    try:
        return unquote(value, errors="strict")
    except UnicodeDecodeError:
        return None


@dataclass(frozen=True, slots=True)
class PublicPathPrefixStrategy:
    """Strip ``/storage/v1/object/public/`` and split ``bucket/key``."""

    prefix: str = PUBLIC_OBJECT_PREFIX
    name: str = "public_path_prefix"

    def extract(self, url: str) -> str | None:
        try:
            path = urlsplit(url).path
        except ValueError:
            return None
        if not path.startswith(self.prefix):
            return None
        decoded = percent_decode(path[len(self.prefix):])
        if decoded is None:
            return None
        bucket, sep, key = decoded.partition("/")
        if not sep or not bucket or not key:
            return None
        return key


@dataclass(frozen=True, slots=True)
class StorageParserStrategy:
    """Delegate to the storage collaborator's own URL parser."""

    parser: Callable[[str], str | None]
    name: str = "storage_parser"

    def extract(self, url: str) -> str | None:
        try:
            key = self.parser(url)
        except ValueError:
            return None
        return key or None


@dataclass(slots=True)
class ObjectKeyResolver:
    """Resolve a public URL to an object key via a fallback chain."""

    strategies: Sequence[KeyStrategy] = field(default_factory=lambda: (PublicPathPrefixStrategy(),))

    @classmethod
    def for_storage(cls, storage) -> "ObjectKeyResolver":
        return cls(
            strategies=(
                PublicPathPrefixStrategy(),
                StorageParserStrategy(parser=storage.parse_object_key),
            )
        )

    def resolve(self, url: str | None) -> str:
        candidate = (url or "").strip()
        if not candidate:
            raise NotResolvableError("empty url")
        for strategy in self.strategies:
            key = strategy.extract(candidate)
            if key:
                return key
        raise NotResolvableError(f"cannot extract object key from url: {candidate}")

    def try_resolve(self, url: str | None) -> str | None:
        try:
            return self.resolve(url)
        except NotResolvableError as exc:
            logger.info("storage.key.unresolvable", extra={"url": url, "reason": str(exc)})
            return None
