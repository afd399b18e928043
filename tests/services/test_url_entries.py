"""Tests for sitemap value objects and the capped entry set."""

from __future__ import annotations

import pytest

from incremental_sitemaps.services.url_entries import (
    SITEMAP_PROTOCOL_MAX_ENTRIES,
    CappedEntrySet,
    CappedEntrySetError,
    ChangeFrequency,
    ImageEntry,
    SitemapIndexEntry,
    UrlEntry,
    UrlEntryValidationError,
    is_valid_lastmod,
)


def test_url_entry_normalizes_changefreq_and_keeps_valid_fields() -> None:
    entry = UrlEntry(
        loc="https://example.com/2024/03/hello-world/",
        lastmod="2024-03-01T10:00:00+00:00",
        changefreq="daily",  # type: ignore[arg-type]
        priority=0.7,
        images=(ImageEntry(loc="https://example.com/hello.png", caption="Hello"),),
    )

    assert entry.changefreq is ChangeFrequency.DAILY
    assert entry.priority == 0.7
    assert entry.images[0].caption == "Hello"


@pytest.mark.parametrize(
    ("kwargs", "message"),
    [
        ({"loc": "/relative/path"}, "valid URL"),
        ({"loc": "https://example.com/with space"}, "valid URL"),
        ({"loc": ""}, "cannot be empty"),
        ({"loc": "https://example.com/", "lastmod": "2024-13-01"}, "lastmod"),
        ({"loc": "https://example.com/", "lastmod": "01/03/2024"}, "lastmod"),
        ({"loc": "https://example.com/", "priority": 1.5}, "between 0.0 and 1.0"),
        ({"loc": "https://example.com/", "priority": True}, "must be a number"),
        ({"loc": "https://example.com/", "changefreq": "sometimes"}, "changefreq"),
    ],
)
def test_url_entry_rejects_malformed_fields(
    kwargs: dict[str, object],
    message: str,
) -> None:
    with pytest.raises(UrlEntryValidationError, match=message):
        UrlEntry(**kwargs)  # type: ignore[arg-type]


def test_url_entry_rejects_oversized_location() -> None:
    with pytest.raises(UrlEntryValidationError, match="exceeds"):
        UrlEntry(loc="https://example.com/" + "a" * 2048)


def test_image_entry_requires_url_license() -> None:
    with pytest.raises(UrlEntryValidationError, match="Image license"):
        ImageEntry(loc="https://example.com/a.png", license="CC-BY")


def test_sitemap_index_entry_rejects_blank_lastmod() -> None:
    with pytest.raises(UrlEntryValidationError):
        SitemapIndexEntry(loc="https://example.com/sitemap-pages.xml", lastmod=" ")


def test_lastmod_accepts_w3c_dates_and_rejects_impossible_days() -> None:
    assert is_valid_lastmod("2024-02-29")
    assert is_valid_lastmod("2024-02-29T10:00:00Z")
    assert is_valid_lastmod("2024-02-29T10:00:00-05:00")
    assert not is_valid_lastmod("2023-02-29")
    assert not is_valid_lastmod("2024-02-28T25:00:00+00:00")


def test_capped_entry_set_silently_drops_overflow() -> None:
    entries: CappedEntrySet[str] = CappedEntrySet(max_entries=2)

    assert entries.add("a") is True
    assert entries.add("b") is True
    assert entries.is_full
    assert entries.add("c") is False

    assert entries.entries() == ("a", "b")
    assert len(entries) == 2
    assert entries.dropped_count == 1

    entries.mark_dropped(4)
    assert entries.dropped_count == 5


def test_capped_entry_set_rejects_limits_outside_protocol() -> None:
    with pytest.raises(CappedEntrySetError):
        CappedEntrySet(max_entries=0)

    with pytest.raises(CappedEntrySetError, match="protocol limit"):
        CappedEntrySet(max_entries=SITEMAP_PROTOCOL_MAX_ENTRIES + 1)


def test_capped_entry_set_defaults_to_protocol_limit() -> None:
    entries: CappedEntrySet[int] = CappedEntrySet(range(3))

    assert entries.max_entries == SITEMAP_PROTOCOL_MAX_ENTRIES
    assert list(entries) == [0, 1, 2]
    assert not entries.is_empty


def test_capped_entry_set_at_protocol_limit_ignores_further_entries() -> None:
    entries: CappedEntrySet[int] = CappedEntrySet(
        range(SITEMAP_PROTOCOL_MAX_ENTRIES + 10)
    )

    assert len(entries) == SITEMAP_PROTOCOL_MAX_ENTRIES
    assert entries.is_full
    assert entries.dropped_count == 10

    assert entries.add(-1) is False
    assert len(entries) == SITEMAP_PROTOCOL_MAX_ENTRIES
    assert entries.entries()[-1] == SITEMAP_PROTOCOL_MAX_ENTRIES - 1
    assert entries.dropped_count == 11
