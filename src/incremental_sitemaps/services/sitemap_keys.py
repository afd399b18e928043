"""Logical identity of stored sitemap documents."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date

_ENTITY_TYPE_PATTERN = re.compile(r"^[a-z][a-z0-9_]*$")
_ENTITY_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")
_DATE_KEY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class SitemapKeyError(ValueError):
    """Raised when a sitemap key is malformed."""


@dataclass(slots=True, frozen=True)
class SitemapKey:
    """Either a calendar day or an ``(entity_type, entity_key)`` pair."""

    sitemap_date: date | None = None
    entity_type: str | None = None
    entity_key: str | None = None

    def __post_init__(self) -> None:
        if self.sitemap_date is not None:
            if self.entity_type is not None or self.entity_key is not None:
                raise SitemapKeyError("A date key cannot carry an entity")
            return

        if self.entity_type is None:
            raise SitemapKeyError("A sitemap key needs a date or an entity type")
        if not _ENTITY_TYPE_PATTERN.match(self.entity_type):
            raise SitemapKeyError(f"Invalid entity type: {self.entity_type!r}")
        if self.entity_key is not None and not _ENTITY_KEY_PATTERN.match(
            self.entity_key
        ):
            raise SitemapKeyError(f"Invalid entity key: {self.entity_key!r}")

    @classmethod
    def for_date(cls, value: date) -> SitemapKey:
        return cls(sitemap_date=value)

    @classmethod
    def for_entity(cls, entity_type: str, entity_key: str | None = None) -> SitemapKey:
        return cls(entity_type=entity_type, entity_key=entity_key)

    @classmethod
    def parse(cls, raw_key: str) -> SitemapKey:
        """Parse the string form produced by :meth:`__str__`."""

        value = raw_key.strip()
        if _DATE_KEY_PATTERN.match(value):
            try:
                return cls.for_date(date.fromisoformat(value))
            except ValueError as error:
                raise SitemapKeyError(f"Invalid sitemap date: {value!r}") from error

        entity_type, separator, entity_key = value.partition("-")
        if separator and not entity_key:
            raise SitemapKeyError(f"Empty entity key in {value!r}")
        return cls.for_entity(entity_type, entity_key or None)

    @property
    def is_date(self) -> bool:
        return self.sitemap_date is not None

    @property
    def filename(self) -> str:
        return f"sitemap-{self}.xml"

    def __str__(self) -> str:
        if self.sitemap_date is not None:
            return self.sitemap_date.isoformat()
        if self.entity_key is None:
            return str(self.entity_type)
        return f"{self.entity_type}-{self.entity_key}"


__all__ = ["SitemapKey", "SitemapKeyError"]
