"""Validated sitemap value objects and the capped entry collection."""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Generic, TypeVar
from urllib.parse import urlsplit

SITEMAP_PROTOCOL_MAX_ENTRIES = 50_000
MAX_URL_LENGTH = 2048
MAX_IMAGE_TEXT_LENGTH = 2048

_LASTMOD_PATTERN = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})"
    r"(?:T(?P<time>\d{2}:\d{2}:\d{2})(?P<offset>Z|[+-]\d{2}:\d{2}))?$"
)

EntryT = TypeVar("EntryT")


class UrlEntryValidationError(ValueError):
    """Raised when a sitemap value object receives a malformed field."""


class CappedEntrySetError(ValueError):
    """Raised when a capped entry set is configured outside protocol limits."""


class ChangeFrequency(str, Enum):
    """Allowed ``changefreq`` values from the sitemap protocol."""

    ALWAYS = "always"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    NEVER = "never"


def is_valid_url(value: str) -> bool:
    """Return whether ``value`` is an absolute http(s) URL."""

    if not value or any(character.isspace() for character in value):
        return False
    try:
        parsed = urlsplit(value)
    except ValueError:
        return False
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def is_valid_lastmod(value: str) -> bool:
    """Return whether ``value`` is a W3C date or datetime naming a real day."""

    match = _LASTMOD_PATTERN.match(value)
    if match is None:
        return False
    try:
        date.fromisoformat(match.group("date"))
        if match.group("time") is not None:
            datetime.strptime(match.group("time"), "%H:%M:%S")
    except ValueError:
        return False
    return True


def _require_url(value: str, *, field_name: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise UrlEntryValidationError(f"{field_name} cannot be empty")
    if len(value) > MAX_URL_LENGTH:
        raise UrlEntryValidationError(
            f"{field_name} exceeds {MAX_URL_LENGTH} characters"
        )
    if not is_valid_url(value):
        raise UrlEntryValidationError(f"{field_name} must be a valid URL: {value}")


def _require_text(value: str | None, *, field_name: str) -> None:
    if value is None:
        return
    if not isinstance(value, str):
        raise UrlEntryValidationError(f"{field_name} must be a string")
    if len(value) > MAX_IMAGE_TEXT_LENGTH:
        raise UrlEntryValidationError(
            f"{field_name} exceeds {MAX_IMAGE_TEXT_LENGTH} characters"
        )


@dataclass(slots=True, frozen=True)
class ImageEntry:
    """Image extension entry nested inside a URL entry."""

    loc: str
    caption: str | None = None
    title: str | None = None
    geo_location: str | None = None
    license: str | None = None

    def __post_init__(self) -> None:
        _require_url(self.loc, field_name="Image location")
        _require_text(self.caption, field_name="Image caption")
        _require_text(self.title, field_name="Image title")
        _require_text(self.geo_location, field_name="Image geo location")
        if self.license is not None:
            _require_url(self.license, field_name="Image license")


@dataclass(slots=True, frozen=True)
class UrlEntry:
    """One ``<url>`` element of a sitemap document.

    Construction validates every field and raises
    :class:`UrlEntryValidationError` rather than coercing bad input.
    """

    loc: str
    lastmod: str | None = None
    changefreq: ChangeFrequency | None = None
    priority: float | None = None
    images: tuple[ImageEntry, ...] = ()

    def __post_init__(self) -> None:
        _require_url(self.loc, field_name="URL location")

        if self.lastmod is not None and (
            not isinstance(self.lastmod, str) or not is_valid_lastmod(self.lastmod)
        ):
            raise UrlEntryValidationError(
                f"Invalid lastmod format: {self.lastmod!r}"
            )

        if self.changefreq is not None:
            try:
                normalized = ChangeFrequency(self.changefreq)
            except ValueError as error:
                raise UrlEntryValidationError(
                    f"Invalid changefreq: {self.changefreq!r}"
                ) from error
            object.__setattr__(self, "changefreq", normalized)

        if self.priority is not None:
            if isinstance(self.priority, bool) or not isinstance(
                self.priority, (int, float)
            ):
                raise UrlEntryValidationError(
                    f"Priority must be a number, got {self.priority!r}"
                )
            if math.isnan(self.priority) or not 0.0 <= self.priority <= 1.0:
                raise UrlEntryValidationError(
                    f"Priority must be between 0.0 and 1.0, got {self.priority}"
                )

        if not isinstance(self.images, tuple):
            raise UrlEntryValidationError("Images must be a tuple of ImageEntry")
        for image in self.images:
            if not isinstance(image, ImageEntry):
                raise UrlEntryValidationError("Images must be ImageEntry instances")


@dataclass(slots=True, frozen=True)
class SitemapIndexEntry:
    """One ``<sitemap>`` element of the sitemap index."""

    loc: str
    lastmod: str | None = None

    def __post_init__(self) -> None:
        _require_url(self.loc, field_name="Sitemap location")
        if self.lastmod is not None and not self.lastmod.strip():
            raise UrlEntryValidationError("Sitemap lastmod cannot be empty")


class CappedEntrySet(Generic[EntryT]):
    """Ordered entry collection that stops accepting entries once full.

    Adding to a full set is a silent no-op; the overflow is counted in
    :attr:`dropped_count` so callers can report truncation.
    """

    def __init__(
        self,
        entries: Iterable[EntryT] = (),
        *,
        max_entries: int = SITEMAP_PROTOCOL_MAX_ENTRIES,
    ) -> None:
        if max_entries < 1:
            raise CappedEntrySetError("Maximum entries must be at least 1")
        if max_entries > SITEMAP_PROTOCOL_MAX_ENTRIES:
            raise CappedEntrySetError(
                "Maximum entries cannot exceed "
                f"{SITEMAP_PROTOCOL_MAX_ENTRIES} (sitemap protocol limit)"
            )

        self._max_entries = max_entries
        self._entries: list[EntryT] = []
        self._dropped_count = 0
        for entry in entries:
            self.add(entry)

    @property
    def max_entries(self) -> int:
        return self._max_entries

    @property
    def dropped_count(self) -> int:
        return self._dropped_count

    @property
    def is_full(self) -> bool:
        return len(self._entries) >= self._max_entries

    @property
    def is_empty(self) -> bool:
        return not self._entries

    def add(self, entry: EntryT) -> bool:
        if self.is_full:
            self._dropped_count += 1
            return False
        self._entries.append(entry)
        return True

    def mark_dropped(self, count: int = 1) -> None:
        """Count entries that were never offered because the set was full."""

        if count > 0:
            self._dropped_count += count

    def entries(self) -> tuple[EntryT, ...]:
        return tuple(self._entries)

    def __iter__(self) -> Iterator[EntryT]:
        return iter(tuple(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(count={len(self._entries)}, "
            f"max_entries={self._max_entries}, dropped={self._dropped_count})"
        )


__all__ = [
    "CappedEntrySet",
    "CappedEntrySetError",
    "ChangeFrequency",
    "ImageEntry",
    "MAX_URL_LENGTH",
    "SITEMAP_PROTOCOL_MAX_ENTRIES",
    "SitemapIndexEntry",
    "UrlEntry",
    "UrlEntryValidationError",
    "is_valid_lastmod",
    "is_valid_url",
]
