"""CLI entrypoint for memo."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import typer

from core.errors import MemoError
from ui.cli import commands

app = typer.Typer(help="memo - persistent, project-scoped memory for agents", no_args_is_help=True)
config_app = typer.Typer(help="Configuration commands")


@contextmanager
def _command_errors() -> Iterator[None]:
    """Print MemoError as `Error: ...` on stderr and exit 1."""
    try:
        yield
    except MemoError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _split_tags(raw: str | None) -> list[str]:
    return [t for t in (raw or "").split(",") if t.strip()]


@app.command("init")
def init_cmd() -> None:
    """Initialize the search index."""
    with _command_errors():
        commands.init()


@app.command("remember")
def remember_cmd(
    memory_type: str = typer.Argument(..., metavar="TYPE", help="fact, learned, preference or context"),
    content: list[str] = typer.Argument(..., help="Memory text"),
    tags: str = typer.Option(None, "--tags", help="Comma separated tags, e.g. user,editor"),
    force: bool = typer.Option(False, "--force", help="Save even if a duplicate exists"),
    global_scope: bool = typer.Option(False, "--global", help="Do not tag with the current project"),
) -> None:
    """Store a memory."""
    with _command_errors():
        commands.remember(
            memory_type=memory_type,
            content=" ".join(content),
            tags=_split_tags(tags),
            force=force,
            global_scope=global_scope,
        )


@app.command("recall")
def recall_cmd(
    query: str = typer.Argument(..., help="Full-text query"),
    limit: int = typer.Argument(10, min=1),
) -> None:
    """Search memories (full-text)."""
    with _command_errors():
        commands.recall(query=query, limit=limit)


@app.command("similar")
def similar_cmd(
    query: str = typer.Argument(..., help="Semantic query"),
    here: bool = typer.Option(False, "--here", help="Only this project"),
    limit: int = typer.Option(5, "--limit", min=1),
) -> None:
    """Semantic search."""
    with _command_errors():
        commands.similar(query=query, here=here, limit=limit)


@app.command("context")
def context_cmd(limit: int = typer.Argument(10, min=1)) -> None:
    """Show memories for the current project."""
    with _command_errors():
        commands.context(limit=limit)


@app.command("list")
def list_cmd(
    type_filter: str = typer.Option(None, "--type", help="Memory type"),
    tag_filter: str = typer.Option(None, "--tag", help="Tag, a|b for any, prefix* for wildcard"),
    project: str = typer.Option(None, "--project", help="Project name"),
    here: bool = typer.Option(False, "--here", help="Current project"),
    limit: int = typer.Option(100, "--limit", min=1),
) -> None:
    """List memories with filters."""
    with _command_errors():
        commands.list_memories(
            type_filter=type_filter,
            tag_filter=tag_filter,
            project=project,
            here=here,
            limit=limit,
        )


@app.command("get")
def get_cmd(memory_id: str = typer.Argument(..., metavar="ID")) -> None:
    """Get a specific memory."""
    with _command_errors():
        commands.get(memory_id)


@app.command("update")
def update_cmd(
    memory_id: str = typer.Argument(..., metavar="ID"),
    content: list[str] = typer.Argument(..., help="New content"),
) -> None:
    """Update a memory's content."""
    with _command_errors():
        commands.update(memory_id, " ".join(content))


@app.command("tag")
def tag_cmd(
    memory_id: str = typer.Argument(..., metavar="ID"),
    tag: str = typer.Argument(...),
) -> None:
    """Add a tag to a memory."""
    with _command_errors():
        commands.tag(memory_id, tag)


@app.command("related")
def related_cmd(
    memory_id: str = typer.Argument(..., metavar="ID"),
    limit: int = typer.Argument(5, min=1),
) -> None:
    """Find memories similar to one."""
    with _command_errors():
        commands.related(memory_id, limit=limit)


@app.command("forget")
def forget_cmd(memory_id: str = typer.Argument(..., metavar="ID")) -> None:
    """Delete a memory."""
    with _command_errors():
        commands.forget(memory_id)


@app.command("merge")
def merge_cmd(
    first_id: str = typer.Argument(..., metavar="ID1"),
    second_id: str = typer.Argument(..., metavar="ID2"),
    content: list[str] = typer.Argument(None, help="Optional merged content"),
) -> None:
    """Merge two memories (optional content override)."""
    with _command_errors():
        commands.merge(first_id, second_id, " ".join(content) if content else None)


@app.command("prune")
def prune_cmd(
    days: int = typer.Option(None, "--days", min=0, help="Age threshold in days (default from config)"),
    delete: bool = typer.Option(False, "--delete", help="Delete instead of dry run"),
) -> None:
    """Find stale memories (default: dry run)."""
    with _command_errors():
        commands.prune(days=days, delete=delete)


@app.command("reindex")
def reindex_cmd() -> None:
    """Generate embeddings for all memories."""
    with _command_errors():
        commands.reindex()


@app.command("stats")
def stats_cmd() -> None:
    """Show memory statistics."""
    with _command_errors():
        commands.stats()


@app.command("projects")
def projects_cmd() -> None:
    """List all projects with memory counts."""
    with _command_errors():
        commands.projects()


@config_app.command("show")
def config_show_cmd() -> None:
    """Show effective configuration."""
    with _command_errors():
        commands.config_show()


app.add_typer(config_app, name="config")


def main() -> None:
    """Console script entrypoint."""
    app()


if __name__ == "__main__":
    main()
