"""Project scoping from the working directory."""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Iterable
from pathlib import Path

logger = logging.getLogger("memo.project")

PROJECT_PREFIX = "project:"


def current_project(cwd: Path | None = None) -> str:
    """Return the git top-level name, else the directory name, else "unknown"."""
    try:
        proc = subprocess.run(
            ["git", "rev-parse", "--show-toplevel"],
            cwd=cwd,
            capture_output=True,
            text=True,
            check=True,
        )
        toplevel = proc.stdout.strip()
        if toplevel:
            return Path(toplevel).name
    except (OSError, subprocess.CalledProcessError) as exc:
        logger.debug("git lookup failed, using directory name: %s", exc)

    try:
        directory = Path(cwd) if cwd is not None else Path(os.getcwd())
    except OSError:
        return "unknown"
    return directory.name or "unknown"


def project_tag(project: str) -> str:
    return f"{PROJECT_PREFIX}{project}"


def has_project_prefix(tag: str) -> bool:
    return tag.startswith(PROJECT_PREFIX)


def is_project_tag(tag: str) -> bool:
    """True for a well-formed `project:<name>` tag."""
    return has_project_prefix(tag) and len(tag) > len(PROJECT_PREFIX)


def project_from_tags(tags: Iterable[str]) -> str | None:
    """Return the project name carried by a tag list, if any."""
    for tag in tags:
        if is_project_tag(tag):
            return tag[len(PROJECT_PREFIX):]
    return None
