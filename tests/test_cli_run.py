"""CLI integration tests for `tagsort run`."""

from __future__ import annotations

import json
import os
from pathlib import Path

from click.testing import CliRunner

from tagsort.cli import cli


def _env_with_home(tmp_path: Path) -> dict[str, str]:
    """Return environment variables pointing HOME to a temp directory.

    Args:
        tmp_path: Temporary directory provided by pytest.

    Returns:
        dict[str, str]: Environment mapping with HOME set.
    """
    env = dict(os.environ)
    env["HOME"] = str(tmp_path / "home")
    return env


def _source(tmp_path: Path, *names: str) -> Path:
    root = tmp_path / "src"
    root.mkdir()
    for name in names:
        (root / name).write_text(f"content of {name}", encoding="utf-8")
    return root


def test_run_copies_and_renames_files(tmp_path: Path) -> None:
    """Copy mode writes renamed targets and leaves sources in place."""
    source = _source(tmp_path, "beach.jpg")
    target = tmp_path / "out" / "photos"

    result = CliRunner().invoke(
        cli,
        ["run", "-s", str(source), "-d", str(target), "-t", "sea", "-t", "family",
         "-t", "sea", "--date", "2024-05-06"],
        env=_env_with_home(tmp_path),
    )

    assert result.exit_code == 0, result.output
    renamed = target / "2024-05-06_000_family_sea.jpg"
    assert renamed.read_text(encoding="utf-8") == "content of beach.jpg"
    assert (source / "beach.jpg").exists()
    assert "Run summary" in result.output


def test_run_move_removes_sources(tmp_path: Path) -> None:
    source = _source(tmp_path, "a.txt", "b.txt")
    target = tmp_path / "dst"

    result = CliRunner().invoke(
        cli,
        ["run", "-s", f"{source}/", "-d", f"{target}//", "--action", "move", "--date",
         "2023-12-31"],
        env=_env_with_home(tmp_path),
    )

    assert result.exit_code == 0, result.output
    assert list(source.iterdir()) == []
    assert sorted(path.name for path in target.iterdir()) == [
        "2023-12-31_000.txt",
        "2023-12-31_001.txt",
    ]


def test_run_dry_run_makes_no_changes(tmp_path: Path) -> None:
    source = _source(tmp_path, "a.txt")
    target = tmp_path / "dst"

    result = CliRunner().invoke(
        cli,
        ["run", "-s", str(source), "-d", str(target), "--action", "move", "--dry-run"],
        env=_env_with_home(tmp_path),
    )

    assert result.exit_code == 0, result.output
    assert not target.exists()
    assert (source / "a.txt").exists()


def test_run_json_output(tmp_path: Path) -> None:
    source = _source(tmp_path, "a.txt")
    target = tmp_path / "dst"

    result = CliRunner().invoke(
        cli,
        ["run", "-s", str(source), "-d", str(target), "-t", "work", "--date", "2022-02-02",
         "--json"],
        env=_env_with_home(tmp_path),
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["counts"]["copy"] == 1
    operation = payload["operations"][0]
    assert operation["target"].endswith("2022-02-02_000_work.txt")
    assert operation["tags"] == ["work"]
    assert payload["events"][0]["operation"] == "copy"


def test_run_invalid_tag_exits_with_tag_status(tmp_path: Path) -> None:
    source = _source(tmp_path, "a.txt")
    target = tmp_path / "dst"

    result = CliRunner().invoke(
        cli,
        ["run", "-s", str(source), "-d", str(target), "-t", "Bad", "--json"],
        env=_env_with_home(tmp_path),
    )

    assert result.exit_code == 5
    payload = json.loads(result.output)
    assert payload["error"]["code"] == "invalid_tag"
    assert payload["error"]["stage"] == "index"
    assert not target.exists()


def test_run_collision_rolls_back_and_keeps_sources(tmp_path: Path) -> None:
    source = _source(tmp_path, "a.txt", "b.txt")
    target = tmp_path / "dst"
    target.mkdir()
    (target / "2020-01-01_001.txt").write_text("existing", encoding="utf-8")

    result = CliRunner().invoke(
        cli,
        ["run", "-s", str(source), "-d", str(target), "--action", "move", "--date",
         "2020-01-01"],
        env=_env_with_home(tmp_path),
    )

    assert result.exit_code == 9
    assert sorted(path.name for path in target.iterdir()) == ["2020-01-01_001.txt"]
    assert (target / "2020-01-01_001.txt").read_text(encoding="utf-8") == "existing"
    assert sorted(path.name for path in source.iterdir()) == ["a.txt", "b.txt"]


def test_run_force_overwrites_existing_targets(tmp_path: Path) -> None:
    source = _source(tmp_path, "a.txt")
    target = tmp_path / "dst"
    target.mkdir()
    (target / "2020-01-01_000.txt").write_text("existing", encoding="utf-8")

    result = CliRunner().invoke(
        cli,
        ["run", "-s", str(source), "-d", str(target), "-f", "--date", "2020-01-01"],
        env=_env_with_home(tmp_path),
    )

    assert result.exit_code == 0, result.output
    assert (target / "2020-01-01_000.txt").read_text(encoding="utf-8") == "content of a.txt"


def test_run_missing_source_exits_with_invalid_value(tmp_path: Path) -> None:
    result = CliRunner().invoke(
        cli,
        ["run", "-s", str(tmp_path / "missing"), "-d", str(tmp_path / "dst")],
        env=_env_with_home(tmp_path),
    )

    assert result.exit_code == 3
    assert "Index failed" in result.output


def test_run_rejects_too_many_cli_tags(tmp_path: Path) -> None:
    source = _source(tmp_path, "a.txt")
    args = ["run", "-s", str(source), "-d", str(tmp_path / "dst")]
    for number in range(17):
        args.extend(["-t", "t" + "a" * number])

    result = CliRunner().invoke(cli, args, env=_env_with_home(tmp_path))

    assert result.exit_code == 2
    assert "Too many tags" in result.output


def test_run_applies_configured_default_tags(tmp_path: Path) -> None:
    source = _source(tmp_path, "a.txt")
    target = tmp_path / "dst"
    env = _env_with_home(tmp_path)
    env["TAGSORT__TAGGING__DEFAULT_TAGS"] = "[archive]"

    result = CliRunner().invoke(
        cli,
        ["run", "-s", str(source), "-d", str(target), "-t", "work", "--date", "2022-02-02"],
        env=env,
    )

    assert result.exit_code == 0, result.output
    assert (target / "2022-02-02_000_archive_work.txt").exists()
