"""Persisted state of the resumable full-rebuild walk."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from incremental_sitemaps.services.option_store import OptionStore
from incremental_sitemaps.utils.dates import format_timestamp, parse_timestamp

OPTION_IN_PROGRESS = "sitemap_generation_in_progress"
OPTION_STOP_REQUESTED = "sitemap_stop_generation"
OPTION_PENDING_YEARS = "sitemap_years_to_process"
OPTION_PENDING_MONTHS = "sitemap_months_to_process"
OPTION_PENDING_DAYS = "sitemap_days_to_process"
OPTION_CURRENT_YEAR = "sitemap_current_year"
OPTION_CURRENT_MONTH = "sitemap_current_month"
OPTION_LAST_RUN = "sitemap_last_run"
OPTION_LAST_CHECK = "sitemap_last_check"
OPTION_LAST_UPDATE = "sitemap_last_update"

QUEUE_OPTIONS = (
    OPTION_PENDING_YEARS,
    OPTION_PENDING_MONTHS,
    OPTION_PENDING_DAYS,
    OPTION_CURRENT_YEAR,
    OPTION_CURRENT_MONTH,
)
WALK_OPTIONS = (OPTION_IN_PROGRESS, *QUEUE_OPTIONS, OPTION_LAST_RUN)
STATE_OPTIONS = (
    OPTION_IN_PROGRESS,
    OPTION_STOP_REQUESTED,
    *QUEUE_OPTIONS,
    OPTION_LAST_RUN,
    OPTION_LAST_CHECK,
    OPTION_LAST_UPDATE,
)

_state_logger = logging.getLogger("incremental_sitemaps.generation.state")


class GenerationStateError(RuntimeError):
    """Raised when generation state cannot be loaded or persisted."""


class GenerationPhase(str, Enum):
    """Position of the full rebuild in its year, month, day walk."""

    IDLE = "idle"
    YEARS_QUEUED = "years_queued"
    MONTHS_QUEUED = "months_queued"
    DAYS_QUEUED = "days_queued"
    HALTING = "halting"


@dataclass(slots=True)
class GenerationState:
    """Queues, flags and timestamps shared across ticks."""

    pending_years: list[int] = field(default_factory=list)
    pending_months: list[int] = field(default_factory=list)
    pending_days: list[int] = field(default_factory=list)
    current_year: int | None = None
    current_month: int | None = None
    in_progress: bool = False
    stop_requested: bool = False
    last_run: datetime | None = None
    last_check: datetime | None = None
    last_update: datetime | None = None

    @property
    def has_pending_work(self) -> bool:
        return bool(self.pending_years or self.pending_months or self.pending_days)

    @property
    def is_halted(self) -> bool:
        return not self.in_progress and self.has_pending_work

    @property
    def phase(self) -> GenerationPhase:
        if self.in_progress and self.stop_requested:
            return GenerationPhase.HALTING
        if not self.in_progress:
            return GenerationPhase.IDLE
        if self.pending_days:
            return GenerationPhase.DAYS_QUEUED
        if self.pending_months:
            return GenerationPhase.MONTHS_QUEUED
        if self.pending_years:
            return GenerationPhase.YEARS_QUEUED
        return GenerationPhase.IDLE

    def clear_queues(self) -> None:
        self.pending_years = []
        self.pending_months = []
        self.pending_days = []
        self.current_year = None
        self.current_month = None

    def to_options(self) -> dict[str, Any]:
        return {
            OPTION_IN_PROGRESS: self.in_progress,
            OPTION_STOP_REQUESTED: self.stop_requested,
            OPTION_PENDING_YEARS: list(self.pending_years),
            OPTION_PENDING_MONTHS: list(self.pending_months),
            OPTION_PENDING_DAYS: list(self.pending_days),
            OPTION_CURRENT_YEAR: self.current_year,
            OPTION_CURRENT_MONTH: self.current_month,
            OPTION_LAST_RUN: format_timestamp(self.last_run),
            OPTION_LAST_CHECK: format_timestamp(self.last_check),
            OPTION_LAST_UPDATE: format_timestamp(self.last_update),
        }

    @classmethod
    def from_options(cls, values: dict[str, Any]) -> GenerationState:
        try:
            return cls(
                pending_years=_int_list(values.get(OPTION_PENDING_YEARS)),
                pending_months=_int_list(values.get(OPTION_PENDING_MONTHS)),
                pending_days=_int_list(values.get(OPTION_PENDING_DAYS)),
                current_year=_optional_int(values.get(OPTION_CURRENT_YEAR)),
                current_month=_optional_int(values.get(OPTION_CURRENT_MONTH)),
                in_progress=bool(values.get(OPTION_IN_PROGRESS, False)),
                stop_requested=bool(values.get(OPTION_STOP_REQUESTED, False)),
                last_run=parse_timestamp(values.get(OPTION_LAST_RUN)),
                last_check=parse_timestamp(values.get(OPTION_LAST_CHECK)),
                last_update=parse_timestamp(values.get(OPTION_LAST_UPDATE)),
            )
        except (TypeError, ValueError) as error:
            raise GenerationStateError(
                f"Persisted generation state is malformed: {error}"
            ) from error


def _int_list(value: Any) -> list[int]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise TypeError(f"expected a list, got {type(value).__name__}")
    return [int(item) for item in value]


def _optional_int(value: Any) -> int | None:
    if value is None:
        return None
    return int(value)


class GenerationStateRepository:
    """Load and persist :class:`GenerationState` through an option store.

    Every write goes through ``set_many`` so one call persists all of its
    keys in a single transaction. Targeted setters only touch their own keys
    to narrow lost updates between overlapping ticks.
    """

    def __init__(self, option_store: OptionStore) -> None:
        self._option_store = option_store

    async def load(self) -> GenerationState:
        try:
            values = await self._option_store.get_many(STATE_OPTIONS)
        except Exception as error:
            raise GenerationStateError("Failed to load generation state") from error
        return GenerationState.from_options(values)

    async def save(
        self,
        state: GenerationState,
        *,
        clear_stop_request: bool = False,
    ) -> None:
        """Persist the walk position; flags owned by other writers are left alone."""

        options = state.to_options()
        values = {name: options[name] for name in WALK_OPTIONS}
        if clear_stop_request:
            values[OPTION_STOP_REQUESTED] = False
        await self._write(values)
        _state_logger.debug(
            "generation_state_saved",
            extra={"phase": state.phase.value},
        )

    async def is_in_progress(self) -> bool:
        return bool(await self._read(OPTION_IN_PROGRESS))

    async def is_stop_requested(self) -> bool:
        return bool(await self._read(OPTION_STOP_REQUESTED))

    async def request_stop(self) -> None:
        await self._write({OPTION_STOP_REQUESTED: True})

    async def set_last_check(self, value: datetime) -> None:
        await self._write({OPTION_LAST_CHECK: format_timestamp(value)})

    async def set_last_update(self, value: datetime) -> None:
        await self._write({OPTION_LAST_UPDATE: format_timestamp(value)})

    async def set_last_run(self, value: datetime) -> None:
        await self._write({OPTION_LAST_RUN: format_timestamp(value)})

    async def clear(self) -> None:
        try:
            await self._option_store.delete_many(STATE_OPTIONS)
        except Exception as error:
            raise GenerationStateError("Failed to clear generation state") from error
        _state_logger.info("generation_state_cleared")

    async def _read(self, name: str) -> Any:
        try:
            return await self._option_store.get(name)
        except Exception as error:
            raise GenerationStateError(f"Failed to read option '{name}'") from error

    async def _write(self, values: dict[str, Any]) -> None:
        try:
            await self._option_store.set_many(values)
        except Exception as error:
            raise GenerationStateError("Failed to persist generation state") from error


__all__ = [
    "GenerationPhase",
    "GenerationState",
    "GenerationStateError",
    "GenerationStateRepository",
    "OPTION_IN_PROGRESS",
    "OPTION_LAST_CHECK",
    "OPTION_LAST_RUN",
    "OPTION_LAST_UPDATE",
    "OPTION_PENDING_DAYS",
    "OPTION_PENDING_MONTHS",
    "OPTION_PENDING_YEARS",
    "OPTION_STOP_REQUESTED",
    "STATE_OPTIONS",
]
