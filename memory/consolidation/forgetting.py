"""Staleness policy: find and prune never-accessed old memories."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from core.errors import MemoError, ValidationError
from core.identity import parse_timestamp
from memory.memory_manager import MemoryManager
from memory.types import Memory

logger = logging.getLogger("memo.forgetting")

DEFAULT_RETENTION_DAYS = 30


@dataclass
class PruneReport:
    """Candidates found, and what happened to them in delete mode."""

    days: int
    dry_run: bool
    candidates: list[Memory] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)


def is_stale(memory: Memory, cutoff: datetime) -> bool:
    """A memory is stale when it was never fetched and predates the cutoff."""
    if memory.access_count > 0:
        return False
    return parse_timestamp(memory.created) < cutoff


def age_days(memory: Memory, at: datetime | None = None) -> int | None:
    try:
        created = parse_timestamp(memory.created)
    except ValidationError:
        return None
    return int(((at or datetime.now(UTC)) - created).total_seconds() // 86400)


class ForgettingPolicy:
    """Applies the staleness rule over every stored memory.

    Only `fetch` counts as an access. Reindex, retrieval and dedup read with
    `fetch_raw`, so running `memo reindex` does not keep a memory from pruning.
    """

    def __init__(self, memory_manager: MemoryManager) -> None:
        self.memory_manager = memory_manager

    def candidates(self, days: int = DEFAULT_RETENTION_DAYS, at: datetime | None = None) -> list[Memory]:
        cutoff = (at or datetime.now(UTC)) - timedelta(days=days)
        stale: list[Memory] = []
        for memory in self.memory_manager.all_memories():
            try:
                if is_stale(memory, cutoff):
                    stale.append(memory)
            except ValidationError as exc:
                logger.warning("skipping %s: %s", memory.id, exc)
        return stale

    def run(self, days: int = DEFAULT_RETENTION_DAYS, delete: bool = False) -> PruneReport:
        """Report stale memories; delete them only when asked."""
        if days < 0:
            raise ValidationError("days must not be negative")
        report = PruneReport(days=days, dry_run=not delete, candidates=self.candidates(days))
        if not delete:
            return report

        for memory in report.candidates:
            try:
                self.memory_manager.delete(memory.id)
            except MemoError as exc:
                report.failures[memory.id] = str(exc)
                continue
            report.deleted.append(memory.id)
        return report
