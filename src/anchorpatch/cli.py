from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import click
from rich import console as rich_console
from rich import table as rich_table

from anchorpatch import __version__
from anchorpatch.logger import configure_logging, logger
from anchorpatch.patch import (
    BundleIOError,
    FileSystemBundleOps,
    PatchOrchestrator,
    build_patch_specs,
    describe_patches,
    diff_to_renderable,
    format_summary,
    looks_unpatched,
)
from anchorpatch.patch.syntax import check_js_syntax
from anchorpatch.settings import LogLevel, Settings, load_settings, merge_overrides

SYNTAX_CHECK_FAILED_EXIT = 3


def _console() -> rich_console.Console:
    return rich_console.Console(highlight=False, emoji=False)


def _load_config(config: Optional[Path]) -> Settings:
    if config is None:
        return Settings()
    try:
        return load_settings(config)
    except (OSError, ValueError) as e:
        raise click.ClickException(f"Invalid configuration {config}: {e}") from e


def _read_text(ops: FileSystemBundleOps, path: Path) -> str:
    try:
        return ops.load(path).text
    except BundleIOError as e:
        raise click.ClickException(str(e)) from e


def _apply_overrides(settings: Settings, overrides: Dict[str, Any]) -> Settings:
    try:
        return merge_overrides(settings, overrides)
    except ValueError as e:
        raise click.ClickException(f"Invalid option: {e}") from e


config_option = click.option(
    "--config",
    "config",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML or JSON5 settings file.",
)


@click.group()
@click.version_option(__version__, prog_name="anchorpatch")
def main() -> None:
    """Anchor-based patcher for minified JavaScript bundles."""


@main.command("patch")
@click.argument("bundle", type=click.Path(dir_okay=False, path_type=Path))
@config_option
@click.option("--only", "only", multiple=True, help="Run only this patch key (repeatable).")
@click.option("--skip", "skip", multiple=True, help="Skip this patch key (repeatable).")
@click.option("--dry-run", is_flag=True, help="Locate and report without writing anything.")
@click.option("--backup/--no-backup", default=None, help="Copy the bundle before writing.")
@click.option(
    "--refresh-backup",
    is_flag=True,
    help="Replace an existing backup with the current bundle.",
)
@click.option(
    "--check-syntax/--no-check-syntax",
    default=None,
    help="Run `node --check` over the patched bundle before writing.",
)
@click.option(
    "--verbose-value",
    type=click.Choice(["true", "false"]),
    default=None,
    help="Value written into the verbose property.",
)
@click.option(
    "--context-low-message",
    default=None,
    help='Replacement context low message as "prefix,suffix".',
)
@click.option(
    "--log-level",
    type=click.Choice([lvl.value for lvl in LogLevel]),
    default=None,
)
@click.option("--log-file", type=click.Path(dir_okay=False, path_type=Path), default=None)
def patch_command(
    bundle: Path,
    config: Optional[Path],
    only: Tuple[str, ...],
    skip: Tuple[str, ...],
    dry_run: bool,
    backup: Optional[bool],
    refresh_backup: bool,
    check_syntax: Optional[bool],
    verbose_value: Optional[str],
    context_low_message: Optional[str],
    log_level: Optional[str],
    log_file: Optional[Path],
) -> None:
    """Apply the bundle patches to BUNDLE in place."""
    settings = _load_config(config)
    disabled: List[str] = [*settings.disabled, *skip]
    settings = _apply_overrides(
        settings,
        {
            "enabled": list(only) if only else None,
            "disabled": disabled,
            "backup": backup,
            "check_syntax": check_syntax,
            "verbose": None if verbose_value is None else verbose_value == "true",
            "context_low_message": context_low_message,
            "log_level": log_level,
            "log_file": log_file,
        },
    )
    configure_logging(settings.log_level.value, settings.log_file)

    try:
        specs = build_patch_specs(settings)
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    console = _console()
    ops = FileSystemBundleOps()
    console.print(f"🔧 Target file: {bundle}", markup=False, soft_wrap=True)

    try:
        buffer = ops.load(bundle)
    except BundleIOError as e:
        raise click.ClickException(str(e)) from e

    backup_path: Optional[Path] = None
    kept_backup = False
    if settings.backup and not dry_run:
        try:
            backup_path, written = ops.backup(
                bundle, settings.backup_suffix, overwrite=refresh_backup
            )
        except BundleIOError as e:
            raise click.ClickException(str(e)) from e
        kept_backup = not written
        verb = "Keeping existing" if kept_backup else "Created"
        console.print(f"📦 {verb} backup: {backup_path}", markup=False, soft_wrap=True)

    console.print("\n🔄 Applying patches...", markup=False)
    orchestrator = PatchOrchestrator(
        specs,
        context=settings.diff_context,
        on_report=lambda report: console.print(diff_to_renderable(report), soft_wrap=True),
    )
    run = orchestrator.run(buffer)
    console.print()
    console.print(format_summary(run.outcomes), markup=False)

    if dry_run:
        console.print("\n🧪 Dry run: bundle left untouched.", markup=False)
        return
    if not run.changed:
        console.print("\nNothing changed; bundle left untouched.", markup=False)
        return

    if (
        kept_backup
        and backup_path is not None
        and looks_unpatched(run)
        and _read_text(ops, backup_path) != run.initial.text
    ):
        raise click.ClickException(
            f"Existing backup {backup_path} differs from the unpatched bundle and may "
            "come from an earlier release; not writing. Re-run with --refresh-backup "
            "to replace it, or with --no-backup."
        )

    if settings.check_syntax:
        result = check_js_syntax(run.buffer.text, settings.node_path, bundle_path=bundle)
        if result.skipped:
            console.print(f"⚠️ Syntax check skipped: {result.message}", markup=False)
        elif not result.ok:
            click.echo(
                f"Error: patched bundle failed the syntax check, not writing {bundle}",
                err=True,
            )
            click.echo(result.message, err=True)
            raise click.exceptions.Exit(SYNTAX_CHECK_FAILED_EXIT)

    try:
        ops.save(run.buffer)
    except BundleIOError as e:
        raise click.ClickException(str(e)) from e
    logger.info("Bundle written", path=str(bundle))

    if backup_path is not None:
        console.print(
            "💡 To restore the original bundle, replace it with the backup file:",
            markup=False,
        )
        console.print(f"   cp {backup_path} {bundle}", markup=False, soft_wrap=True)


@main.command("list")
@config_option
def list_command(config: Optional[Path]) -> None:
    """List the known patches in application order."""
    settings = _load_config(config)
    try:
        rows = describe_patches(settings)
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    table = rich_table.Table(show_header=True, header_style="bold")
    table.add_column("Key", no_wrap=True)
    table.add_column("Name", no_wrap=True)
    table.add_column("Enabled", no_wrap=True)
    for key, name, selected in rows:
        table.add_row(key, name, "yes" if selected else "no")
    _console().print(table)


if __name__ == "__main__":
    main()
