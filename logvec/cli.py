"""
Command-line interface for logvec.

A thin layer over the library API: it opens files, picks the configuration
and prints results as tables.
"""

import json
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import AnalysisConfig, default_config_path, load_config, save_config
from .errors import LogVecError
from .journal.ops import count_entries, nth_entry
from .pipeline import analyze_path, compare_runs, divergent_entries
from .semantic.similarity import NO_SIGNAL
from .utils.logging_setup import setup_logging

console = Console()


def _format_score(score) -> str:
    return "no signal" if score is NO_SIGNAL else f"{score:.4f}"


@click.group(name="logvec")
@click.version_option(__version__, prog_name="logvec")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False),
              help="Path to configuration file")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--skip-bad-records", is_flag=True, help="Drop malformed records instead of aborting")
@click.pass_context
def cli(ctx, config_path, verbose, skip_bad_records):
    """Compare captured journals by hashed message vectors."""
    setup_logging("logvec", level="DEBUG" if verbose else "WARNING")
    try:
        config = load_config(config_path)
    except (LogVecError, OSError) as e:
        raise click.ClickException(str(e))
    if skip_bad_records:
        config.parser.on_error = "skip"
    ctx.obj = config


@cli.command(name="compare")
@click.argument("run_a", type=click.Path(exists=True, dir_okay=False))
@click.argument("run_b", type=click.Path(exists=True, dir_okay=False))
@click.option("--top", type=int, default=None, help="Entries to list for the most divergent group")
@click.option("--group", "group_key", default=None, help="Rank entries of this group instead")
@click.option("--shards", type=int, default=1, help="Analyze each run in this many parallel shards")
@click.option("--json", "as_json", is_flag=True, help="Output results as JSON")
@click.pass_obj
def compare(config: AnalysisConfig, run_a, run_b, top, group_key, shards, as_json):
    """Rank the groups of RUN_A and RUN_B from most to least divergent."""
    try:
        comparison = compare_runs(Path(run_a), Path(run_b), config, shards=shards)
        target = group_key
        if target is None and comparison.most_divergent() is not None:
            target = comparison.most_divergent().key
        report = None
        if target is not None:
            report = divergent_entries(Path(run_b), comparison.run_a.aggregator, target, config, top_n=top)
    except LogVecError as e:
        raise click.ClickException(str(e))

    if as_json:
        payload = {
            "ranking": [
                {"group": c.key, "score": None if c.is_no_signal else c.score,
                 "reason": c.reason, "entries_a": c.count_a, "entries_b": c.count_b}
                for c in comparison.ranking
            ],
            "stats": {"a": comparison.run_a.stats.to_dict(), "b": comparison.run_b.stats.to_dict()},
        }
        if report is not None:
            payload["divergent_entries"] = {
                "group": report.group_key,
                "normalized": report.normalized,
                "entries": [{"index": e.index, "offset": e.offset, "score": e.score, "message": e.message}
                            for e in report.entries],
            }
        click.echo(json.dumps(payload, indent=2))
        return

    table = Table(title="Group similarity (most divergent first)")
    table.add_column("Group")
    table.add_column("Similarity", justify="right")
    table.add_column("Entries A", justify="right")
    table.add_column("Entries B", justify="right")
    table.add_column("Note")
    for c in comparison.ranking:
        table.add_row(c.key, _format_score(c.score), str(c.count_a), str(c.count_b), c.reason or "")
    console.print(table)

    if report is not None and report.entries:
        entries = Table(title=f"Entries of {report.group_key} in run B least like run A")
        entries.add_column("#", justify="right")
        entries.add_column("Similarity", justify="right")
        entries.add_column("Message")
        for e in report.entries:
            entries.add_row(str(e.index), f"{e.score:.4f}", e.message)
        console.print(entries)


@cli.command(name="groups")
@click.argument("src", type=click.Path(exists=True, dir_okay=False))
@click.option("--shards", type=int, default=1, help="Analyze in this many parallel shards")
@click.pass_obj
def groups(config: AnalysisConfig, src, shards):
    """List the groups of SRC with their entry counts."""
    try:
        result = analyze_path(src, config, shards=shards)
    except LogVecError as e:
        raise click.ClickException(str(e))

    table = Table(title=f"Groups in {src}")
    table.add_column("Group")
    table.add_column("Entries", justify="right")
    table.add_column("Tokens", justify="right")
    for group in result.aggregator.groups():
        table.add_row(group.key, str(group.count), str(int(group.vector.sum())))
    console.print(table)
    for name, value in result.stats.to_dict().items():
        console.print(f"{name}: {value}")


@cli.command(name="count")
@click.argument("src", type=click.Path(exists=True, dir_okay=False))
@click.pass_obj
def count(config: AnalysisConfig, src):
    """Count the records in SRC."""
    try:
        with open(src, "rb") as fh:
            click.echo(count_entries(fh, config.parser))
    except LogVecError as e:
        raise click.ClickException(str(e))


@cli.command(name="show-entry")
@click.argument("src", type=click.Path(exists=True, dir_okay=False))
@click.argument("n", type=int)
@click.pass_obj
def show_entry(config: AnalysisConfig, src, n):
    """Print the fields of the N-th entry (0-based) of SRC."""
    try:
        with open(src, "rb") as fh:
            entry = nth_entry(fh, n, config.parser)
    except LogVecError as e:
        raise click.ClickException(str(e))
    if entry is None:
        raise click.ClickException(f"{src} has fewer than {n + 1} entries")
    for name, value in entry.items():
        click.echo(f"{name}={value.as_text()}")


@cli.group(name="config")
def config_group():
    """Manage logvec configuration."""
    pass


@config_group.command(name="init")
@click.option("--path", type=click.Path(), default=".logvec.yml", help="Path for config file")
@click.option("--force", is_flag=True, help="Overwrite an existing file")
def config_init(path, force):
    """Write a configuration file with default values."""
    config_path = Path(path)
    if config_path.exists() and not force:
        raise click.ClickException(f"Config file {path} already exists (use --force)")
    save_config(AnalysisConfig(), config_path)
    console.print(f"[green]Created config file at {path}[/green]")


@config_group.command(name="show")
@click.pass_obj
def config_show(config: AnalysisConfig):
    """Display the effective configuration."""
    console.print(f"Default config file: {default_config_path()}")
    click.echo(json.dumps(config.to_dict(), indent=2))


def main():
    """Main CLI entry point."""
    cli(prog_name="logvec")


if __name__ == "__main__":
    main()
