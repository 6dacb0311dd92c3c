"""CLI interface for Broom."""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path

import click

from broom.config import Config, add_to_whitelist, load_config, remove_from_whitelist, save_config
from broom.core.duplicates import (
    DEFAULT_MIN_SIZE,
    HASH_ALGORITHMS,
    PARTIAL_MATCH_WARNING,
    DuplicateAction,
    DuplicateFinder,
    DuplicateGroup,
    parse_size,
    resolve_group,
)
from broom.core.engine import ScanEngine
from broom.core.executor import CleanExecutor
from broom.core.registry import ScannerRegistry
from broom.core.safety import filter_results
from broom.core.tracker import Tracker
from broom.models.clean_result import CleanResult, CleanSummary
from broom.models.scan_result import ScanResult
from broom.models.scanner import Scanner
from broom.scanners import build_registry
from broom.utils import bytes_to_human, format_elapsed

_SAFETY_COLORS = {"safe": "green", "moderate": "yellow", "risky": "red"}


def _setup_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _build_registry() -> ScannerRegistry:
    return build_registry()


def _safety_tag(level: str) -> str:
    if level == "safe":
        return ""
    return click.style(f" [{level}]", fg=_SAFETY_COLORS[level])


def _result_line(result: ScanResult) -> str:
    category = result.category
    if result.error and not result.items:
        return f"  {click.style('✗', fg='red')} {category.name:30s} — {result.error}"
    if result.total_size == 0:
        return f"  {click.style('·', fg='bright_black')} {category.name:30s} — nothing to clean"
    size_str = click.style(bytes_to_human(result.total_size), fg="green", bold=True)
    line = (
        f"  {click.style('✓', fg='green')} {category.name:30s} — "
        f"{size_str} ({len(result.items):,} items){_safety_tag(category.safety_level)}"
    )
    if result.error:
        line += click.style(f" (partial: {result.error})", fg="yellow")
    return line


def _scan_result_to_dict(result: ScanResult) -> dict:
    return {
        "category": result.category.id,
        "name": result.category.name,
        "group": result.category.group,
        "safety_level": result.category.safety_level,
        "total_size": result.total_size,
        "item_count": len(result.items),
        "error": result.error,
        "items": [
            {
                "path": str(item.path),
                "name": item.name,
                "size": item.size,
                "is_directory": item.is_directory,
                "modified_at": item.modified_at.isoformat() if item.modified_at else None,
            }
            for item in result.items
        ],
    }


def _clean_result_to_dict(result: CleanResult) -> dict:
    return {
        "category": result.category.id,
        "cleaned_items": result.cleaned_items,
        "freed_space": result.freed_space,
        "errors": result.errors,
        "skipped": [str(p) for p in result.skipped],
    }


def _run_scan(
    registry: ScannerRegistry,
    config: Config,
    category_ids: tuple[str, ...],
    quiet: bool,
) -> list[ScanResult]:
    engine = ScanEngine(registry, concurrency=config.concurrency)

    def on_progress(completed: int, total: int, scanner: Scanner) -> None:
        if not quiet:
            click.echo(click.style(f"  [{completed}/{total}] {scanner.name}", fg="bright_black"), err=True)

    summary = engine.scan(
        list(category_ids) if category_ids else None,
        exclude=config.blacklist,
        on_progress=on_progress,
    )
    return summary.results


@click.group()
@click.option("-v", "--verbose", count=True, help="Increase verbosity (-v info, -vv debug)")
@click.version_option(package_name="broom")
def main(verbose: int) -> None:
    """Broom: find and remove reclaimable disk space."""
    _setup_logging(verbose)


# ── list ─────────────────────────────────────────────────────────────────

@main.command("list")
@click.option("--group", "-g", default=None, help="Only show categories of this group")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def list_cmd(group: str | None, as_json: bool) -> None:
    """List cleaning categories and whether they apply to this system."""
    registry = _build_registry()
    scanners = registry.get_by_group(group) if group else registry.get_all()

    if as_json:
        data = [
            {
                "id": s.id,
                "name": s.name,
                "group": s.category.group,
                "description": s.category.description,
                "safety_level": s.category.safety_level,
                "safety_note": s.category.safety_note,
                "available": s.is_available(),
            }
            for s in scanners
        ]
        click.echo(json.dumps(data, indent=2))
        return

    if not scanners:
        click.echo("No categories found.")
        return

    grouped: dict[str, list[Scanner]] = {}
    for scanner in scanners:
        grouped.setdefault(scanner.category.group, []).append(scanner)

    for group_name, members in grouped.items():
        click.echo(f"\n  {click.style(group_name, fg='blue', bold=True)}")
        for scanner in members:
            reason = scanner.unavailable_reason
            status = click.style(f" ({reason})", fg="bright_black") if reason else ""
            click.echo(
                f"    {click.style(scanner.id, fg='cyan', bold=True):30s}  "
                f"{scanner.name}{_safety_tag(scanner.category.safety_level)}{status}"
            )
            click.echo(f"      {scanner.category.description}")
    click.echo()


# ── scan ─────────────────────────────────────────────────────────────────

@main.command()
@click.argument("category_ids", nargs=-1)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def scan(category_ids: tuple[str, ...], as_json: bool) -> None:
    """Scan for reclaimable space (preview only, never deletes)."""
    config = load_config()
    registry = _build_registry()

    if not as_json:
        click.echo(f"\n{click.style('🔍', bold=True)} Scanning...\n")

    started = time.monotonic()
    results = _run_scan(registry, config, category_ids, quiet=as_json)
    partition = filter_results(results, config.whitelist)
    filtered = [*partition.safe, *partition.risky]

    if as_json:
        click.echo(json.dumps([_scan_result_to_dict(r) for r in filtered], indent=2))
        return

    for result in results:
        if result.items or result.error:
            continue
        click.echo(_result_line(result))
    for result in filtered:
        click.echo(_result_line(result))

    elapsed = format_elapsed(time.monotonic() - started)
    total = sum(r.total_size for r in filtered)
    click.echo(f"\nTotal reclaimable: {click.style(bytes_to_human(total), fg='green', bold=True)} (scanned in {elapsed})")
    if partition.risky and not config.include_risky:
        click.echo(
            click.style(
                f"{bytes_to_human(partition.risky_size)} of it is in risky categories "
                "(cleaned only with --unsafe)",
                fg="yellow",
            )
        )
    click.echo()


# ── clean ────────────────────────────────────────────────────────────────

@main.command()
@click.argument("category_ids", nargs=-1)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.option("--all", "-a", "clean_all", is_flag=True, help="Clean all categories without selecting")
@click.option("--unsafe", is_flag=True, help="Include risky categories")
@click.option("--dry-run", is_flag=True, help="Show what would be cleaned without doing it")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def clean(
    category_ids: tuple[str, ...],
    yes: bool,
    clean_all: bool,
    unsafe: bool,
    dry_run: bool,
    as_json: bool,
) -> None:
    """Scan, filter and clean."""
    config = load_config()
    dry_run = dry_run or config.dry_run
    registry = _build_registry()

    if not as_json:
        click.echo(f"\n{click.style('🔍', bold=True)} Scanning...\n")

    results = _run_scan(registry, config, category_ids, quiet=as_json)
    partition = filter_results(results, config.whitelist)
    include_risky = unsafe or config.include_risky
    actionable = [r for r in partition.select(include_risky) if r.items]

    if not as_json and partition.risky and not include_risky:
        click.echo(click.style("  Skipping risky categories (use --unsafe to include):", fg="yellow"))
        for result in partition.risky:
            click.echo(f"    {result.category.name:28s} {bytes_to_human(result.total_size)}")
            if result.category.safety_note:
                click.echo(click.style(f"      {result.category.safety_note}", fg="bright_black"))
        click.echo()

    if not actionable:
        if as_json:
            click.echo(json.dumps({"status": "nothing_to_clean", "results": []}))
        else:
            click.echo("Nothing to clean.")
        return

    if not as_json:
        for result in actionable:
            click.echo(_result_line(result))
        total = sum(r.total_size for r in actionable)
        click.echo(f"\nTotal: {click.style(bytes_to_human(total), fg='green', bold=True)}\n")

    if not dry_run and not yes and not as_json:
        if clean_all:
            if not click.confirm(f"Clean {len(actionable)} categories?", default=False):
                click.echo("Aborted.")
                return
        else:
            choice = click.prompt("Clean all? [y/N/select]", default="n", show_default=False)
            match choice.lower():
                case "y" | "yes":
                    pass
                case "select":
                    ids_to_clean = _interactive_select(actionable)
                    if not ids_to_clean:
                        click.echo("Nothing selected.")
                        return
                    actionable = [r for r in actionable if r.category.id in ids_to_clean]
                case _:
                    click.echo("Aborted.")
                    return

    if not as_json:
        verb = "Simulating" if dry_run else "Cleaning"
        click.echo(f"\n{click.style('🧹', bold=True)} {verb}...\n")

    tracker = Tracker(command="clean")
    summary = CleanExecutor(registry).execute(
        actionable,
        dry_run=dry_run,
        on_deleted=None if dry_run else tracker.record_deletion,
    )
    if not dry_run:
        tracker.record(summary.results)
        tracker.save_session()

    if as_json:
        status = "dry_run" if dry_run else "cleaned"
        click.echo(
            json.dumps(
                {
                    "status": status,
                    "total_freed_space": summary.total_freed_space,
                    "total_cleaned_items": summary.total_cleaned_items,
                    "results": [_clean_result_to_dict(r) for r in summary.results],
                },
                indent=2,
            )
        )
        return

    _print_clean_summary(summary, dry_run)


def _print_clean_summary(summary: CleanSummary, dry_run: bool) -> None:
    verb = "would free" if dry_run else "freed"
    for result in summary.results:
        if result.errors:
            click.echo(
                f"  {click.style('!', fg='yellow')} {result.category.name:30s} — "
                f"{verb} {bytes_to_human(result.freed_space)}, {len(result.errors)} error(s)"
            )
            for error in result.errors:
                click.echo(click.style(f"      {error}", fg="bright_black"))
        else:
            click.echo(
                f"  {click.style('✓', fg='green')} {result.category.name:30s} — "
                f"{verb} {click.style(bytes_to_human(result.freed_space), fg='green', bold=True)}"
            )

    label = "Would free" if dry_run else "Total freed"
    click.echo(f"\n{label}: {click.style(bytes_to_human(summary.total_freed_space), fg='green', bold=True)}")
    if dry_run:
        click.echo("(dry run — no files were deleted)")
    click.echo()


def _interactive_select(results: list[ScanResult]) -> set[str]:
    """Let the user pick which categories to clean."""
    click.echo("\nSelect categories to clean (enter numbers, comma-separated):\n")
    for i, r in enumerate(results, 1):
        click.echo(f"  [{i}] {r.category.name:30s} — {bytes_to_human(r.total_size)}")
    click.echo()
    raw = click.prompt("Selection", default="")
    if not raw.strip():
        return set()
    selected: set[str] = set()
    for part in raw.split(","):
        part = part.strip()
        if part.isdigit():
            idx = int(part) - 1
            if 0 <= idx < len(results):
                selected.add(results[idx].category.id)
    return selected


# ── duplicates ───────────────────────────────────────────────────────────

def _parse_size_option(ctx: click.Context, param: click.Parameter, value: str | None) -> int:
    if value is None:
        return DEFAULT_MIN_SIZE
    try:
        return parse_size(value)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e


@main.command()
@click.argument("paths", nargs=-1, required=True, type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--min-size", callback=_parse_size_option, default=None, help="Smallest file size (e.g. 500KB, 1MB)")
@click.option("--hash", "algorithm", type=click.Choice(HASH_ALGORITHMS), default="sha256", show_default=True)
@click.option(
    "--action",
    type=click.Choice([a.value for a in DuplicateAction]),
    default=DuplicateAction.SKIP.value,
    show_default=True,
    help="What to do with each group",
)
@click.option("--verify/--no-verify", default=True, help="Compare full contents of large files before acting")
@click.option("--dry-run", is_flag=True, help="Show what would be done without doing it")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def duplicates(
    paths: tuple[Path, ...],
    min_size: int,
    algorithm: str,
    action: str,
    verify: bool,
    dry_run: bool,
    yes: bool,
    as_json: bool,
) -> None:
    """Find files with identical content under PATHS."""
    finder = DuplicateFinder(min_size=min_size, algorithm=algorithm)
    dup_action = DuplicateAction(action)

    if not as_json:
        click.echo(f"\n{click.style('🔍', bold=True)} Looking for duplicates...\n")

    groups = finder.find(*paths)

    if not groups:
        if as_json:
            click.echo(json.dumps({"groups": [], "results": []}))
        else:
            click.echo("No duplicates found.")
        return

    if not as_json:
        _print_groups(groups)

    if dup_action is DuplicateAction.SKIP:
        if as_json:
            click.echo(json.dumps({"groups": [_group_to_dict(g) for g in groups]}, indent=2))
        return

    warning = PARTIAL_MATCH_WARNING if any(g.is_partial for g in groups) else None
    if warning:
        click.echo(click.style(f"Warning: {warning}", fg="yellow"), err=True)
        if not verify:
            click.echo(click.style("Full-content verification is disabled (--no-verify).", fg="yellow"), err=True)
        if not as_json:
            click.echo()

    if not dry_run and not yes and not as_json:
        if not click.confirm(f"Apply '{dup_action.value}' to {len(groups)} group(s)?", default=False):
            click.echo("Aborted.")
            return

    tracker = Tracker(command="duplicates")
    results = [
        resolve_group(
            group,
            dup_action,
            dry_run=dry_run,
            verify=verify,
            algorithm=algorithm,
            on_removed=None if dry_run else tracker.record_deletion,
        )
        for group in groups
    ]
    summary = CleanSummary.from_results(results)
    if not dry_run:
        tracker.record(results)
        tracker.save_session()

    if as_json:
        click.echo(
            json.dumps(
                {
                    "groups": [_group_to_dict(g) for g in groups],
                    "status": "dry_run" if dry_run else "done",
                    "total_freed_space": summary.total_freed_space,
                    "total_cleaned_items": summary.total_cleaned_items,
                    "errors": [e for r in results for e in r.errors],
                    "warning": warning,
                },
                indent=2,
            )
        )
        return

    for result in results:
        for error in result.errors:
            click.echo(click.style(f"  ! {error}", fg="yellow"))
    verb = "Would free" if dry_run else "Freed"
    click.echo(
        f"\n{verb} {click.style(bytes_to_human(summary.total_freed_space), fg='green', bold=True)} "
        f"from {summary.total_cleaned_items:,} duplicate(s)\n"
    )


def _group_to_dict(group: DuplicateGroup) -> dict:
    return {
        "fingerprint": group.fingerprint,
        "size": group.size,
        "partial": group.is_partial,
        "wasted_space": group.wasted_space,
        "paths": [str(p) for p in group.paths],
    }


def _print_groups(groups: list[DuplicateGroup]) -> None:
    for group in groups:
        partial = click.style(" [partial match]", fg="yellow") if group.is_partial else ""
        click.echo(
            f"  {click.style(bytes_to_human(group.size), fg='cyan', bold=True)} × {len(group.files)}"
            f" — {bytes_to_human(group.wasted_space)} reclaimable{partial}"
        )
        for path in group.paths:
            click.echo(f"      {path}")
    wasted = sum(g.wasted_space for g in groups)
    click.echo(
        f"\n{len(groups)} group(s), "
        f"{click.style(bytes_to_human(wasted), fg='green', bold=True)} reclaimable\n"
    )


# ── whitelist ────────────────────────────────────────────────────────────

@main.group()
def whitelist() -> None:
    """Manage paths that are never cleaned."""


@whitelist.command("add")
@click.argument("path")
def whitelist_add(path: str) -> None:
    """Protect PATH and everything below it."""
    config = load_config()
    save_config(add_to_whitelist(config, path))
    click.echo(f"Added to whitelist: {path}")


@whitelist.command("remove")
@click.argument("path")
def whitelist_remove(path: str) -> None:
    """Stop protecting PATH."""
    config = load_config()
    if path not in config.whitelist:
        raise click.ClickException(f"Not in whitelist: {path}")
    save_config(remove_from_whitelist(config, path))
    click.echo(f"Removed from whitelist: {path}")


@whitelist.command("list")
def whitelist_list() -> None:
    """Show whitelisted paths."""
    config = load_config()
    if not config.whitelist:
        click.echo("Whitelist is empty.")
        return
    for entry in config.whitelist:
        click.echo(entry)


# ── stats ────────────────────────────────────────────────────────────────

@main.command()
@click.option("--period", "-p", default="all", type=click.Choice(["today", "week", "month", "all"]))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def stats(period: str, as_json: bool) -> None:
    """Show space freed statistics."""
    tracker = Tracker()
    data = tracker.get_stats(period)

    if as_json:
        click.echo(json.dumps(data, indent=2))
        return

    click.echo(f"\n{click.style('📊', bold=True)} Statistics ({period})\n")
    click.echo(f"  Bytes freed:    {click.style(bytes_to_human(data['bytes_freed']), fg='green', bold=True)}")
    click.echo(f"  Items removed:  {data['items_removed']:,}")
    click.echo(f"  Sessions:       {data['session_count']}")
    click.echo(f"  Lifetime total: {click.style(bytes_to_human(data['lifetime_bytes_freed']), fg='cyan', bold=True)}")

    last = tracker.get_last_clean_time()
    if last:
        click.echo(f"  Last clean:     {last}")

    if data["per_category"]:
        click.echo("\n  Per-category breakdown:")
        for cid, cstats in sorted(data["per_category"].items(), key=lambda x: x[1]["bytes_freed"], reverse=True):
            click.echo(f"    {cid:25s} {bytes_to_human(cstats['bytes_freed']):>10s}  ({cstats['items_removed']:,} items)")
    click.echo()
