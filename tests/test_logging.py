"""Tests for structured log formatting."""

from __future__ import annotations

import json
import logging
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.sqlite")

from incremental_sitemaps.utils.logging import (
    MAX_LOGGED_SEQUENCE_ITEMS,
    JsonLogFormatter,
    KeyValueFormatter,
    OversizedValueFilter,
    structured_fields,
)


def _record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="incremental_sitemaps.generation",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="sitemap_document_upserted",
        args=None,
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_every_extra_field() -> None:
    record = _record(sitemap_key="2024-03-01", entry_count=12, pending_years=[2023])

    payload = json.loads(JsonLogFormatter().format(record))

    assert payload["message"] == "sitemap_document_upserted"
    assert payload["logger"] == "incremental_sitemaps.generation"
    assert payload["sitemap_key"] == "2024-03-01"
    assert payload["entry_count"] == 12
    assert payload["pending_years"] == [2023]
    assert "lineno" not in payload


def test_key_value_formatter_appends_extra_fields() -> None:
    record = _record(sitemap_key="2024-03-01", outcome="created")

    line = KeyValueFormatter(fmt="%(levelname)s | %(message)s").format(record)

    assert line == (
        "INFO | sitemap_document_upserted | sitemap_key=2024-03-01 outcome=created"
    )


def test_oversized_value_filter_shortens_bodies_and_lists() -> None:
    record = _record(
        xml_body="<url/>" * 200,
        pending_days=list(range(31)),
        sitemap_key="2024-03-01",
    )

    assert OversizedValueFilter().filter(record) is True

    fields = structured_fields(record)
    assert fields["xml_body"].endswith("more chars]")
    assert len(fields["pending_days"]) == MAX_LOGGED_SEQUENCE_ITEMS + 1
    assert fields["pending_days"][-1] == "... [11 more]"
    assert fields["sitemap_key"] == "2024-03-01"
