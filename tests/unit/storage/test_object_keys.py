from __future__ import annotations

import pytest

from src.schoolhub.media.media_errors import NotResolvableError
from src.schoolhub.storage.object_keys import (
    ObjectKeyResolver,
    PublicPathPrefixStrategy,
    StorageParserStrategy,
    percent_decode,
)

pytestmark = pytest.mark.unit


def test_public_path_strategy_strips_bucket() -> None:
    strategy = PublicPathPrefixStrategy()

    key = strategy.extract(
        "https://proj.supabase.co/storage/v1/object/public/media/schools/1/images/icon/a%20b.png?v=3"
    )

    assert key == "schools/1/images/icon/a b.png"


@pytest.mark.parametrize(
    "url",
    [
        "https://proj.supabase.co/storage/v1/object/public/media",
        "https://proj.supabase.co/storage/v1/object/public/media/",
        "https://proj.supabase.co/storage/v1/object/sign/media/a.png",
        "https://proj.supabase.co/storage/v1/object/public/media/bad%zz.png",
    ],
)
def test_public_path_strategy_rejects_malformed_urls(url: str) -> None:
    assert PublicPathPrefixStrategy().extract(url) is None


def test_percent_decode_rejects_invalid_utf8() -> None:
    assert percent_decode("a%C3%28") is None
    assert percent_decode("caf%C3%A9") == "café"


def test_resolver_falls_back_to_storage_parser() -> None:
    def parser(url: str) -> str | None:
        prefix = "https://files.example.org/"
        return url[len(prefix):] if url.startswith(prefix) else None

    resolver = ObjectKeyResolver(strategies=(PublicPathPrefixStrategy(), StorageParserStrategy(parser)))

    assert resolver.resolve("https://files.example.org/spam/old.png") == "spam/old.png"


def test_resolver_raises_when_no_strategy_matches() -> None:
    resolver = ObjectKeyResolver()

    with pytest.raises(NotResolvableError):
        resolver.resolve("https://elsewhere.test/pic.png")
    with pytest.raises(NotResolvableError):
        resolver.resolve("   ")
    assert resolver.try_resolve(None) is None


def test_resolver_accepts_additional_strategies() -> None:
    class QueryStrategy:
        name = "query"

        def extract(self, url: str) -> str | None:
            _, _, key = url.partition("?key=")
            return key or None

    resolver = ObjectKeyResolver(strategies=(PublicPathPrefixStrategy(), QueryStrategy()))

    assert resolver.resolve("https://cdn.test/download?key=a/b.png") == "a/b.png"
