"""CLI smoke tests."""

from __future__ import annotations

import json
import re
from pathlib import Path

import pytest
from typer.testing import CliRunner

from core.orchestrator import Orchestrator, RuntimeBundle
from embeddings.providers.hash_provider import HashEmbedder
from ui.cli import commands
from ui.cli.cli import app

runner = CliRunner()


@pytest.fixture
def build_bundle(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    environ = {
        "MEMO_DB_PATH": str(tmp_path / "memo.db"),
        "MEMO_CONFIG": str(tmp_path / "missing.yaml"),
    }

    def build() -> RuntimeBundle:
        return Orchestrator(root=tmp_path, environ=environ, embedder=HashEmbedder(dimension=64)).build()

    monkeypatch.setattr(commands, "_runtime", build)
    monkeypatch.setattr(commands, "current_project", lambda: "demo")
    return build


def remembered_id(output: str) -> str:
    match = re.search(r"Remembered \[([0-9a-f]{8})\]", output)
    assert match, output
    return match.group(1)


def test_remember_and_get(build_bundle) -> None:
    result = runner.invoke(app, ["remember", "preference", "User", "prefers", "vim", "--tags", "user,editor"])
    assert result.exit_code == 0, result.output
    memory_id = remembered_id(result.output)

    shown = runner.invoke(app, ["get", memory_id])
    assert shown.exit_code == 0
    assert "Content:  User prefers vim" in shown.output
    assert "Tags:     project:demo, user, editor" in shown.output
    assert "Access#:  0" in shown.output


def test_duplicate_remember_is_skipped(build_bundle) -> None:
    runner.invoke(app, ["remember", "fact", "Deploys run on Fridays"])

    blocked = runner.invoke(app, ["remember", "fact", "Deploys run on Fridays"])
    assert blocked.exit_code == 1
    assert "Duplicate:" in blocked.output
    assert "Skipping" in blocked.output

    forced = runner.invoke(app, ["remember", "fact", "Deploys run on Fridays", "--force"])
    assert forced.exit_code == 0
    assert build_bundle().memory.stats()["total"] == 2


def test_global_remember_has_no_project(build_bundle) -> None:
    result = runner.invoke(app, ["remember", "fact", "Global note", "--global"])
    memory_id = remembered_id(result.output)
    assert build_bundle().memory.fetch_raw(memory_id).tags == []


def test_remember_tags_keep_one_project(build_bundle) -> None:
    bare = runner.invoke(app, ["remember", "fact", "Bare project tag", "--tags", "user,project:"])
    assert bare.exit_code == 1
    assert "Error: invalid tag" in bare.output

    named = runner.invoke(app, ["remember", "fact", "Named project tag", "--tags", "project:other,user"])
    assert named.exit_code == 0, named.output
    tags = build_bundle().memory.fetch_raw(remembered_id(named.output)).tags
    assert tags == ["project:demo", "user"]
    assert build_bundle().memory.stats()["total"] == 1


def test_malformed_config_reports_error(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    bad = tmp_path / "config.yaml"
    bad.write_text("- not\n- a mapping\n", encoding="utf-8")
    monkeypatch.setenv("MEMO_CONFIG", str(bad))
    monkeypatch.setenv("MEMO_DB_PATH", str(tmp_path / "memo.db"))

    result = runner.invoke(app, ["stats"])

    assert result.exit_code == 1
    assert "Error: invalid config" in result.output


def test_missing_memory_reports_error(build_bundle) -> None:
    result = runner.invoke(app, ["get", "deadbeef"])
    assert result.exit_code == 1
    assert "Error: memory not found: deadbeef" in result.output


def test_related_needs_reindex(build_bundle) -> None:
    bundle = build_bundle()
    first = bundle.memory.create("fact", "alpha note", ["a", "b"], "demo")
    bundle.memory.create("fact", "alpha notes", [], "demo")

    unindexed = runner.invoke(app, ["related", first.id])
    assert unindexed.exit_code == 1
    assert "reindex" in unindexed.output

    reindexed = runner.invoke(app, ["reindex"])
    assert reindexed.exit_code == 0
    assert "Indexed 2 memories." in reindexed.output

    related = runner.invoke(app, ["related", first.id])
    assert related.exit_code == 0
    assert f"Related to [{first.id}]" in related.output
    assert "alpha notes" in related.output
    assert f"[{first.id}] (" not in related.output


def test_list_recall_stats_and_projects(build_bundle) -> None:
    bundle = build_bundle()
    bundle.memory.create("fact", "Python uses indentation", ["lang"], "demo")
    bundle.memory.create("preference", "Tabs are banned", [], "other")

    listed = runner.invoke(app, ["list", "--here"])
    assert "1 memories" in listed.output
    assert "[demo] Python uses indentation" in listed.output

    recalled = runner.invoke(app, ["recall", "indentation"])
    assert "1 results found" in recalled.output

    stats = runner.invoke(app, ["stats"])
    assert re.search(r"fact:\s+1", stats.output)
    assert re.search(r"preference:\s+1", stats.output)
    assert "Total: 2" in stats.output

    projects = runner.invoke(app, ["projects"])
    assert re.search(r"demo\s+1 memories", projects.output)
    assert re.search(r"other\s+1 memories", projects.output)


def test_update_tag_merge_and_forget(build_bundle) -> None:
    bundle = build_bundle()
    first = bundle.memory.create("fact", "Uses postgres", [], "demo")
    second = bundle.memory.create("fact", "Uses redis", ["cache"], "demo")

    updated = runner.invoke(app, ["update", first.id, "Uses", "postgres", "16"])
    assert f"Updated [{first.id}]: Uses postgres 16" in updated.output

    tagged = runner.invoke(app, ["tag", first.id, "db"])
    assert f"Tagged [{first.id}] with: db" in tagged.output
    again = runner.invoke(app, ["tag", first.id, "db"])
    assert again.exit_code == 1

    merged = runner.invoke(app, ["merge", first.id, second.id])
    assert merged.exit_code == 0
    assert f"Merged [{first.id}] + [{second.id}] → [{first.id}]: Uses postgres 16 | Uses redis" in merged.output

    forgot = runner.invoke(app, ["forget", first.id])
    assert f"Forgot: {first.id}" in forgot.output
    assert build_bundle().memory.all_ids() == []


def test_prune_and_context(build_bundle) -> None:
    empty = runner.invoke(app, ["context"])
    assert "No memories found for this project." in empty.output

    build_bundle().memory.create("fact", "fresh", [], "demo")
    pruned = runner.invoke(app, ["prune"])
    assert "No stale memories found (access_count=0, older than 30 days)." in pruned.output

    context = runner.invoke(app, ["context"])
    assert "Context for project: demo" in context.output
    assert "fresh" in context.output


def test_config_show(build_bundle, tmp_path: Path) -> None:
    result = runner.invoke(app, ["config", "show"])
    assert result.exit_code == 0
    shown = json.loads(result.output)
    assert shown["db_path"] == str(tmp_path / "memo.db")
    assert shown["prune_days"] == 30
