"""Command line interface for tagsort."""

from __future__ import annotations

import difflib
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, NoReturn

import click
import yaml
from click.core import ParameterSource
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from tagsort.config import ConfigError, ConfigManager, TagsortConfig, resolve_with_precedence
from tagsort.files import (
    FileAction,
    FileErrorKind,
    FileIndex,
    FileOperationError,
    FileTransaction,
    OperationEvent,
    PreparedState,
    TransactionOptions,
)
from tagsort.ingestion import DirectoryScanner
from tagsort.logging_config import configure_logging

console = Console()
LOGGER = logging.getLogger(__name__)

CLI_MAX_TAGS = 16

EXIT_CODES: dict[FileErrorKind, int] = {
    FileErrorKind.INVALID_VALUE: 3,
    FileErrorKind.NOT_FOUND: 4,
    FileErrorKind.INVALID_TAG: 5,
    FileErrorKind.ACCESS_DENIED: 6,
    FileErrorKind.INVALID_OPERATION: 7,
    FileErrorKind.TOO_MANY_TAGS: 8,
    FileErrorKind.ALREADY_EXISTS: 9,
}


def _handle_file_error(
    exc: FileOperationError,
    *,
    stage: str,
    json_output: bool,
    details: dict[str, Any] | None = None,
) -> NoReturn:
    """Report a file operation failure and exit with the status for its kind.

    Args:
        exc: Failure raised by the index, scanner, or transaction.
        stage: Phase that failed (``index``, ``prepare``, ``commit``, ...).
        json_output: Emit a JSON error payload instead of plain text.
        details: Optional structured context for the JSON payload.

    Raises:
        SystemExit: In JSON mode, after printing the payload.
        click.ClickException: Otherwise, carrying the kind-specific exit code.
    """
    exit_code = EXIT_CODES.get(exc.kind, 1)
    message = f"{stage.capitalize()} failed: {exc}"

    if json_output:
        error: dict[str, Any] = {
            "code": exc.kind.value,
            "stage": stage,
            "message": str(exc),
            "path": exc.path.as_posix() if exc.path is not None else None,
        }
        if details:
            error["details"] = details
        console.print_json(data={"error": error})
        raise SystemExit(exit_code)

    failure = click.ClickException(message)
    failure.exit_code = exit_code
    raise failure from exc


def _emit_message(message: Any, *, mode: str, quiet: bool, summary_only: bool) -> None:
    """Print ``message`` unless quiet or summary-only mode hides it."""
    if quiet and mode != "error":
        return
    if summary_only and mode not in {"summary", "warning", "error"}:
        return
    console.print(message)


def _format_summary_line(command: str, root: Path | str, metrics: dict[str, Any]) -> str:
    parts = ", ".join(f"{key}={value}" for key, value in metrics.items())
    return f"[green]{command} summary for {root}: {parts}.[/green]"


def _strip_trailing_slashes(value: str) -> str:
    stripped = value.rstrip("/")
    return stripped or "/"


def _assign_nested(target: dict[str, Any], path: list[str], value: Any) -> None:
    """Assign ``value`` at the dotted ``path`` inside ``target``.

    Raises:
        ConfigError: If an intermediate key holds a non-mapping value.
    """
    node = target
    for segment in path[:-1]:
        existing = node.setdefault(segment, {})
        if not isinstance(existing, dict):
            raise ConfigError(
                f"Cannot assign into '{segment}' because it is not a mapping in the config file."
            )
        node = existing
    node[path[-1]] = value


def _count_states(transaction: FileTransaction) -> dict[str, int]:
    counts = {state.value: 0 for state in PreparedState if state != PreparedState.NONE}
    for operation in transaction.operations:
        if operation.state != PreparedState.NONE:
            counts[operation.state.value] += 1
    return counts


def _events_payload(events: tuple[OperationEvent, ...] | list[OperationEvent]) -> list[Any]:
    return [event.model_dump(mode="json") for event in events]


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="tagsort")
def cli() -> None:
    """tagsort renames files by date and tags and relocates them safely."""


@cli.command("run")
@click.option(
    "-s",
    "--source",
    required=True,
    type=click.Path(file_okay=False, path_type=str),
    help="Source directory to scan.",
)
@click.option(
    "-d",
    "--target",
    required=True,
    type=click.Path(file_okay=False, path_type=str),
    help="Target directory for renamed files.",
)
@click.option(
    "-t",
    "--tag",
    "tags",
    multiple=True,
    help="Add tag to indexed files (can be used multiple times).",
)
@click.option(
    "-a",
    "--action",
    type=click.Choice([action.value for action in FileAction]),
    help="Action applied to every indexed file.",
)
@click.option(
    "--date",
    "override_date",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    help="Use this date instead of file timestamps in generated names.",
)
@click.option("-v", "--verbose", is_flag=True, help="Narrate every prepared and committed step.")
@click.option("-f", "--force", is_flag=True, help="Overwrite existing files in the target.")
@click.option("--dry-run", is_flag=True, help="Preview changes without modifying files.")
@click.option("--json", "json_output", is_flag=True, help="Emit JSON describing the run.")
@click.option("--summary", "summary_mode", is_flag=True, help="Only emit summary lines.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def run(
    ctx: click.Context,
    source: str,
    target: str,
    tags: tuple[str, ...],
    action: str | None,
    override_date: datetime | None,
    verbose: bool,
    force: bool,
    dry_run: bool,
    json_output: bool,
    summary_mode: bool,
    quiet: bool,
) -> None:
    """Index files in SOURCE, tag and rename them, and place them in TARGET.

    Every target file is written before any source is removed. If writing a
    target fails, the targets written so far are deleted again and the
    sources are left untouched.
    """
    try:
        config = ConfigManager().load()
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    explicit_quiet = ctx.get_parameter_source("quiet") == ParameterSource.COMMANDLINE
    explicit_summary = ctx.get_parameter_source("summary_mode") == ParameterSource.COMMANDLINE
    quiet_enabled = quiet if explicit_quiet else config.cli.quiet_default
    summary_only = summary_mode if explicit_summary else config.cli.summary_default
    if json_output:
        if explicit_quiet and quiet_enabled:
            raise click.UsageError("--json cannot be combined with --quiet.")
        quiet_enabled = False
        summary_only = False
    if quiet_enabled and summary_only:
        raise click.UsageError("Quiet and summary modes cannot both be enabled.")

    if len(tags) > CLI_MAX_TAGS:
        raise click.UsageError(f"Too many tags (max {CLI_MAX_TAGS}).")

    options = TransactionOptions(
        dry_run=dry_run or config.transaction.dry_run,
        verbose=verbose or config.transaction.verbose,
        force=force or config.transaction.force,
    )
    configure_logging(config.logging, verbose=options.verbose)

    source_root = Path(_strip_trailing_slashes(source))
    target_root = Path(_strip_trailing_slashes(target))
    file_action = FileAction(action or config.transaction.default_action)
    override = override_date.replace(tzinfo=timezone.utc) if override_date else None

    index = FileIndex(override_timestamp=override)
    try:
        DirectoryScanner().populate(index, source_root)
        index.add_tags_to_all([*config.tagging.default_tags, *tags])
        index.set_action_for_all(file_action)
        transaction = FileTransaction.init(target_root, create=not options.dry_run)
    except FileOperationError as exc:
        _handle_file_error(exc, stage="index", json_output=json_output)

    try:
        transaction.prepare(index, options)
    except FileOperationError as exc:
        rollback_error: str | None = None
        try:
            transaction.rollback(options)
        except FileOperationError as rollback_exc:
            LOGGER.error("Rollback left files behind: %s", rollback_exc)
            rollback_error = str(rollback_exc)
        if not json_output and rollback_error is None:
            _emit_message(
                "[yellow]Rolled back prepared files; sources were not modified.[/yellow]",
                mode="warning",
                quiet=quiet_enabled,
                summary_only=summary_only,
            )
        _handle_file_error(
            exc,
            stage="prepare",
            json_output=json_output,
            details={"rolled_back": rollback_error is None, "rollback_error": rollback_error},
        )

    try:
        events = transaction.commit(options)
    except FileOperationError as exc:
        _handle_file_error(
            exc,
            stage="commit",
            json_output=json_output,
            details={"committed": _events_payload(transaction.events)},
        )

    counts = _count_states(transaction)
    rows = [
        {
            "source": operation.source_file.path.as_posix(),
            "target": operation.target_path.as_posix(),
            "action": operation.state.value,
            "method": operation.method,
            "tags": operation.source_file.unique_tags(),
        }
        for operation in transaction.operations
    ]
    transaction.cleanup()

    if json_output:
        console.print_json(
            data={
                "context": {
                    "source": source_root.as_posix(),
                    "target": target_root.as_posix(),
                    "dry_run": options.dry_run,
                    "force": options.force,
                    "action": file_action.value,
                },
                "counts": counts,
                "operations": rows,
                "events": _events_payload(events),
            }
        )
        return

    if rows and not summary_only and not quiet_enabled:
        title = f"{'Preview' if options.dry_run else 'Relocated'}: {source_root} → {target_root}"
        table = Table(title=title)
        table.add_column("Source", overflow="fold")
        table.add_column("Action")
        table.add_column("Target", overflow="fold")
        table.add_column("Method")
        for row in rows:
            target_cell = row["target"] if row["action"] in ("copy", "move") else "-"
            table.add_row(
                Path(row["source"]).name,
                row["action"],
                Path(target_cell).name if target_cell != "-" else target_cell,
                row["method"] or "-",
            )
        console.print(table)

    metrics: dict[str, Any] = {"files": len(rows), **counts, "dry_run": options.dry_run}
    _emit_message(
        _format_summary_line("Run", source_root, metrics),
        mode="summary",
        quiet=quiet_enabled,
        summary_only=summary_only,
    )


@cli.group()
def config() -> None:
    """Manage tagsort configuration files and overrides."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
def config_view(no_env: bool) -> None:
    """Display the effective configuration after applying precedence rules."""
    manager = ConfigManager()
    try:
        effective = manager.load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    yaml_text = yaml.safe_dump(effective.model_dump(mode="python"), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="Value to assign to KEY.")
def config_set(key: str, value: str) -> None:
    """Persist a configuration value expressed as a dotted KEY."""
    manager = ConfigManager()
    manager.ensure_exists()

    segments = [segment.strip() for segment in key.split(".") if segment.strip()]
    if not segments:
        raise click.ClickException("KEY must specify a dotted path such as 'transaction.force'.")

    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    before = manager.read_text().splitlines()
    try:
        file_data = manager.load_file_overrides()
        _assign_nested(file_data, segments, parsed_value)
        resolve_with_precedence(defaults=TagsortConfig(), file_overrides=file_data)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(file_data)
    diff = list(
        difflib.unified_diff(
            before,
            manager.read_text().splitlines(),
            fromfile="config.yaml (before)",
            tofile="config.yaml (after)",
            lineterm="",
        )
    )
    if diff:
        console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    console.print(f"[green]Updated {'.'.join(segments)}.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()
