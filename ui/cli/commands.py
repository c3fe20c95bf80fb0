"""Typer command handlers."""

from __future__ import annotations

import json
import logging

import typer

from core.errors import DuplicateMemoryError
from core.orchestrator import Orchestrator, RuntimeBundle
from core.project import current_project, project_from_tags
from memory.consolidation.forgetting import age_days
from memory.dedup import DedupReport
from memory.types import Memory, MemoryType, SimilarityCandidate


class _EchoHandler(logging.Handler):
    """Writes log records through typer so redirected stderr is honoured."""

    def emit(self, record: logging.LogRecord) -> None:
        typer.echo(self.format(record), err=True)


def configure_logging(level: str) -> None:
    """Route `memo.*` loggers to stderr once per process."""
    logger = logging.getLogger("memo")
    logger.setLevel(getattr(logging, level.upper(), logging.WARNING))
    if not any(isinstance(h, _EchoHandler) for h in logger.handlers):
        handler = _EchoHandler()
        handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
        logger.addHandler(handler)
        logger.propagate = False


def _runtime() -> RuntimeBundle:
    bundle = Orchestrator().build()
    configure_logging(bundle.settings.log_level)
    return bundle


def _project_label(memory: Memory) -> str:
    return project_from_tags(memory.tags) or "?"


def _echo_memory(memory: Memory) -> None:
    typer.echo(f"[{memory.id}] ({memory.type}) {memory.content}")


def _echo_candidate(candidate: SimilarityCandidate) -> None:
    memory = candidate.memory
    typer.echo(f"[{memory.id}] ({candidate.score:.2f}) ({memory.type}) {memory.content}")


def _echo_dedup(report: DedupReport) -> None:
    for dup in report.duplicates:
        typer.echo(f"Duplicate: [{dup.memory.id}] ({dup.score * 100:.0f}%) {dup.memory.content}")
    for sim in report.similar:
        typer.echo(f"Similar:   [{sim.memory.id}] ({sim.score * 100:.0f}%) {sim.memory.content}")
    if report.text_match is not None:
        match = report.text_match
        typer.echo(f"Duplicate: [{match.id}] (text match) {match.content}")


def init() -> None:
    """Rebuild the search indexes."""
    bundle = _runtime()
    typer.echo("Initializing memo index...")
    count = bundle.memory.init_index()
    typer.echo(f"Index created ({count} indexes) at {bundle.settings.db_path}.")


def remember(
    memory_type: str,
    content: str,
    tags: list[str],
    force: bool = False,
    global_scope: bool = False,
) -> None:
    """Store a memory after the duplicate check."""
    bundle = _runtime()
    project = None if global_scope else current_project()
    try:
        result = bundle.lifecycle.remember(memory_type, content, tags, project=project, force=force)
    except DuplicateMemoryError as exc:
        _echo_dedup(exc.report)
        typer.echo("\nSkipping - use --force to save anyway, or memo update <id> to edit existing.")
        raise
    if result.report is not None:
        _echo_dedup(result.report)
    typer.echo(f"Remembered [{result.memory.id}]: {result.memory.content}")


def recall(query: str, limit: int) -> None:
    """Full-text search."""
    bundle = _runtime()
    memories = bundle.memory.text_search(query, limit=limit)
    typer.echo(f"{len(memories)} results found\n")
    for memory in memories:
        _echo_memory(memory)


def similar(query: str, here: bool, limit: int) -> None:
    """Semantic search, optionally scoped to the current project."""
    bundle = _runtime()
    project = current_project() if here else None
    if project:
        typer.echo(f"Searching for: {query} (project: {project})")
    else:
        typer.echo(f"Searching for: {query}")

    results = bundle.retriever.search(query, limit=limit, project=project)
    typer.echo()
    if not results:
        typer.echo("No matching memories found.")
        return
    for candidate in results:
        _echo_candidate(candidate)


def context(limit: int) -> None:
    """Show memories for the current project."""
    bundle = _runtime()
    project = current_project()
    typer.echo(f"Context for project: {project}")
    typer.echo("================================\n")
    memories = bundle.retriever.context(project, limit=limit)
    if not memories:
        typer.echo("No memories found for this project.\n")
        typer.echo("Start remembering with:")
        typer.echo('  memo remember fact "something important"')
        return
    for memory in memories:
        _echo_memory(memory)


def list_memories(
    type_filter: str | None,
    tag_filter: str | None,
    project: str | None,
    here: bool,
    limit: int,
) -> None:
    """List memories with optional filters."""
    bundle = _runtime()
    if here:
        project = current_project()
    memories = bundle.memory.list_by_filter(type_filter, tag_filter, limit=limit, project=project)
    typer.echo(f"{len(memories)} memories\n")
    for memory in memories:
        typer.echo(f"[{memory.id}] ({memory.type}) [{_project_label(memory)}] {memory.content}")


def get(memory_id: str) -> None:
    """Show one memory; counts as an access."""
    bundle = _runtime()
    memory = bundle.memory.fetch(memory_id)
    typer.echo(f"ID:       {memory.id}")
    typer.echo(f"Type:     {memory.type}")
    typer.echo(f"Content:  {memory.content}")
    typer.echo(f"Tags:     {', '.join(memory.tags)}")
    typer.echo(f"Created:  {memory.created}")
    typer.echo(f"Accessed: {memory.accessed}")
    typer.echo(f"Access#:  {memory.access_count}")


def update(memory_id: str, content: str) -> None:
    bundle = _runtime()
    bundle.lifecycle.update(memory_id, content)
    typer.echo(f"Updated [{memory_id}]: {content}")


def tag(memory_id: str, tag_name: str) -> None:
    bundle = _runtime()
    bundle.memory.add_tag(memory_id, tag_name)
    typer.echo(f"Tagged [{memory_id}] with: {tag_name.strip()}")


def related(memory_id: str, limit: int) -> None:
    """Show memories near a stored one."""
    bundle = _runtime()
    results = bundle.retriever.related(memory_id, limit=limit)
    typer.echo(f"Related to [{memory_id}]:\n")
    for candidate in results:
        _echo_candidate(candidate)


def forget(memory_id: str) -> None:
    bundle = _runtime()
    bundle.lifecycle.forget(memory_id)
    typer.echo(f"Forgot: {memory_id}")


def merge(first_id: str, second_id: str, content: str | None) -> None:
    """Merge the second memory into the first."""
    bundle = _runtime()
    result = bundle.lifecycle.merge(first_id, second_id, content)
    for step, message in result.failures.items():
        typer.echo(f"  Warning: {step}: {message}", err=True)
    typer.echo(f"Merged [{first_id}] + [{second_id}] → [{first_id}]: {result.content}")


def prune(days: int | None, delete: bool) -> None:
    """Report, or delete, never-accessed memories older than `days`."""
    bundle = _runtime()
    days = bundle.settings.prune_days if days is None else days
    report = bundle.lifecycle.prune(days=days, delete=delete)

    if not report.candidates:
        typer.echo(f"No stale memories found (access_count=0, older than {days} days).")
        return

    if report.dry_run:
        typer.echo(f"Stale memories (access_count=0, older than {days} days):\n")
        for memory in report.candidates:
            age = age_days(memory)
            age_label = f"{age}d" if age is not None else "?"
            typer.echo(
                f"[{memory.id}] ({memory.type}) [{_project_label(memory)}] "
                f"({memory.access_count} accesses, {age_label} old) {memory.content}"
            )
        typer.echo(f"\n{len(report.candidates)} candidates. Use --delete to remove them.")
        return

    for memory in report.candidates:
        if memory.id in report.failures:
            typer.echo(f"  Error pruning [{memory.id}]: {report.failures[memory.id]}", err=True)
        else:
            typer.echo(f"Pruned [{memory.id}]: {memory.content}")
    typer.echo(f"\nPruned {len(report.deleted)} memories.")


def reindex() -> None:
    """Regenerate embeddings for every memory."""
    bundle = _runtime()
    typer.echo("Reindexing all memories...")
    report = bundle.lifecycle.reindex()
    if report.total == 0:
        typer.echo("No memories to index.")
        return
    for memory_id, message in report.failures.items():
        typer.echo(f"  {memory_id}: Error: {message}")
    typer.echo(f"\nIndexed {report.indexed} memories.")


def stats() -> None:
    bundle = _runtime()
    counts = bundle.memory.stats()
    typer.echo("Memory Statistics")
    typer.echo("=================")
    for memory_type in MemoryType:
        typer.echo(f"{memory_type.value + ':':<12} {counts.get(memory_type.value, 0)}")
    typer.echo(f"\nTotal: {counts.get('total', 0)}")


def projects() -> None:
    bundle = _runtime()
    counts = bundle.memory.projects()
    if not counts:
        typer.echo("No projects with memories yet.")
        return
    typer.echo("Projects")
    typer.echo("========")
    for name, count in sorted(counts.items()):
        typer.echo(f"{name:<20} {count} memories")


def config_show() -> None:
    """Show effective runtime config."""
    bundle = _runtime()
    typer.echo(json.dumps(bundle.settings.model_dump(mode="json"), indent=2))
