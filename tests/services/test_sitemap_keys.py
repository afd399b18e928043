"""Tests for sitemap document keys."""

from __future__ import annotations

from datetime import date

import pytest

from incremental_sitemaps.services.sitemap_keys import SitemapKey, SitemapKeyError


def test_date_key_string_form_and_filename() -> None:
    key = SitemapKey.for_date(date(2024, 3, 1))

    assert key.is_date
    assert str(key) == "2024-03-01"
    assert key.filename == "sitemap-2024-03-01.xml"
    assert SitemapKey.parse("2024-03-01") == key


def test_entity_keys_parse_with_and_without_entity_key() -> None:
    taxonomy_key = SitemapKey.parse("taxonomies-post_tag")
    pages_key = SitemapKey.parse("pages")

    assert taxonomy_key.entity_type == "taxonomies"
    assert taxonomy_key.entity_key == "post_tag"
    assert taxonomy_key.filename == "sitemap-taxonomies-post_tag.xml"
    assert pages_key == SitemapKey.for_entity("pages")
    assert pages_key.entity_key is None
    assert not pages_key.is_date


@pytest.mark.parametrize("raw_key", ["2024-02-30", "Bad Type", "pages-", "-x", ""])
def test_parse_rejects_malformed_keys(raw_key: str) -> None:
    with pytest.raises(SitemapKeyError):
        SitemapKey.parse(raw_key)


def test_date_key_cannot_carry_entity() -> None:
    with pytest.raises(SitemapKeyError, match="cannot carry"):
        SitemapKey(sitemap_date=date(2024, 3, 1), entity_type="pages")


def test_keys_are_hashable_values() -> None:
    keys = {
        SitemapKey.for_date(date(2024, 3, 1)),
        SitemapKey.parse("2024-03-01"),
        SitemapKey.for_entity("pages"),
    }

    assert len(keys) == 2
