"""CLI application for rulepatch."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from rich.console import Console
from rich.table import Table

from rulepatch import __version__
from rulepatch.core.providers import get_all_provider_types, get_available_providers, get_provider
from rulepatch.core.review_pool import ReviewPool, ReviewStatus, ReviewSummary
from rulepatch.core.rule_set import RuleSet
from rulepatch.errors import DiscoveryError, ReadError, RuleParseError
from rulepatch.utils.config import Settings, get_effective_settings, load_settings
from rulepatch.utils.discovery import build_file_tree, discover_files
from rulepatch.utils.file_ops import get_relative_path
from rulepatch.utils.logger import setup_logging

app = typer.Typer(
    name="rulepatch",
    help="rulepatch - review a repository against its rule documents and write patch files",
    add_completion=False,
)

console = Console()

RootArgument = Annotated[
    Path,
    typer.Argument(help="Project root directory"),
]
RulesDirOption = Annotated[
    Optional[str],
    typer.Option("--rules-dir", "-d", help="Rules directory, relative to the root"),
]
EnvFileOption = Annotated[
    Optional[Path],
    typer.Option("--env-file", help="Path to a .env file with settings"),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"rulepatch v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    _: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    log_level: Annotated[
        Optional[str],
        typer.Option("--log-level", "-l", help="Logging level (debug, info, warning, error)"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-V", help="Enable verbose output"),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option("--quiet", "-q", help="Suppress non-error output"),
    ] = False,
) -> None:
    """rulepatch - rule-driven code review."""
    level = log_level or ("DEBUG" if verbose else "INFO")
    setup_logging(level=level, quiet=quiet)


def _load_settings(root: Path, env_file: Path | None, **overrides: Any) -> Settings:
    """Effective settings for a project, with CLI overrides applied last."""
    settings = get_effective_settings(root, base=load_settings(env_file))
    updates = {key: value for key, value in overrides.items() if value is not None}
    if updates:
        settings = settings.model_copy(update=updates)
    return settings


def _load_rule_set(root: Path, settings: Settings) -> RuleSet:
    """Build the RuleSet or exit with an error message."""
    rules_path = settings.get_rules_path(root)
    try:
        return RuleSet.from_directory(rules_path)
    except (DiscoveryError, RuleParseError, ReadError) as e:
        console.print(f"[red]Failed to load rules: {e}[/red]")
        raise typer.Exit(1)


def _discover(root: Path, settings: Settings) -> list[str]:
    """Discover reviewable files or exit with an error message."""
    try:
        return discover_files(
            root,
            ignore_file=settings.ignore_file,
            extra_ignores=[f"{settings.rules_dir.strip('/')}/", f"{settings.patch_dir.strip('/')}/"],
        )
    except DiscoveryError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


def _print_summary(summary: ReviewSummary, root: Path) -> None:
    table = Table(title="Review Summary")
    table.add_column("File", style="cyan")
    table.add_column("Outcome")
    table.add_column("Detail", style="dim")

    styles = {
        ReviewStatus.WRITTEN: "green",
        ReviewStatus.SKIPPED: "yellow",
        ReviewStatus.FAILED: "red",
    }
    for result in sorted(summary.results, key=lambda r: r.file_path):
        style = styles[result.status]
        detail = get_relative_path(result.patch_path, root) if result.patch_path else (result.error or "-")
        table.add_row(result.file_path, f"[{style}]{result.status.value}[/{style}]", detail)

    console.print(table)
    console.print(
        f"[green]{summary.written} written[/green], "
        f"[yellow]{summary.skipped} skipped[/yellow], "
        f"[red]{summary.failed} failed[/red]"
    )


@app.command()
def review(
    root: RootArgument = Path("."),
    rules_dir: RulesDirOption = None,
    patch_dir: Annotated[
        Optional[str],
        typer.Option("--patch-dir", help="Patch output directory, relative to the root"),
    ] = None,
    provider: Annotated[
        Optional[str],
        typer.Option("--provider", "-p", help="Provider backend (openai, anthropic, litellm, claudecode, codex)"),
    ] = None,
    model: Annotated[
        Optional[str],
        typer.Option("--model", "-m", help="Model to use"),
    ] = None,
    workers: Annotated[
        Optional[int],
        typer.Option("--workers", "-w", min=1, help="Number of concurrent workers"),
    ] = None,
    tools: Annotated[
        Optional[bool],
        typer.Option("--tools/--no-tools", help="Let the model load project files and download sources"),
    ] = None,
    strict: Annotated[
        bool,
        typer.Option("--strict", help="Fail if any rule document is incomplete"),
    ] = False,
    env_file: EnvFileOption = None,
) -> None:
    """Review every project file against the rules and write patch files.

    Examples:
        rulepatch review                       # Review the current directory
        rulepatch review ../service -w 4       # Four workers on another project
        rulepatch review -p anthropic          # Use Anthropic
        rulepatch review -p claudecode         # Use the Claude Code CLI
    """
    root = root.resolve()
    settings = _load_settings(
        root,
        env_file,
        rules_dir=rules_dir,
        patch_dir=patch_dir,
        provider=provider,
        model=model,
        workers=workers,
        enable_tools=tools,
    )

    rule_set = _load_rule_set(root, settings)
    problems = rule_set.validate()
    for path, issues in problems.items():
        console.print(f"[yellow]Incomplete rule {path}: {', '.join(issues)}[/yellow]")
    if problems and strict:
        raise typer.Exit(1)

    files = _discover(root, settings)
    if not files:
        console.print("[red]No files to review[/red]")
        raise typer.Exit(1)

    try:
        backend = get_provider(settings.provider, settings, model=settings.model)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    if not backend.is_available():
        console.print(f"[red]Provider '{backend.name}' is not available.[/red]")
        available = get_available_providers(settings)
        if available:
            console.print(f"Available providers: {', '.join(available)}")
        else:
            console.print("No providers are currently available. Check your configuration.")
        raise typer.Exit(1)

    console.print(
        f"[blue]Reviewing {len(files)} file(s) against {len(rule_set)} rule(s) "
        f"with {backend.name}...[/blue]\n"
    )

    pool = ReviewPool.from_settings(rule_set, backend, settings, root=root)
    summary = pool.run(files)
    _print_summary(summary, root)


@app.command(name="rules")
def list_rules(
    root: RootArgument = Path("."),
    rules_dir: RulesDirOption = None,
    file: Annotated[
        Optional[str],
        typer.Option("--file", "-f", help="Only show rules that apply to this relative path"),
    ] = None,
    env_file: EnvFileOption = None,
) -> None:
    """List rule documents and the files they apply to."""
    root = root.resolve()
    settings = _load_settings(root, env_file, rules_dir=rules_dir)
    rule_set = _load_rule_set(root, settings)

    rules = rule_set.match(file) if file else list(rule_set)
    if not rules:
        console.print("[yellow]No rules found[/yellow]")
        return

    title = f"Rules for {file}" if file else "Rules"
    table = Table(title=title)
    table.add_column("Rule", style="cyan")
    table.add_column("Description")
    table.add_column("Globs", style="yellow")
    table.add_column("Always", style="magenta")

    for rule in rules:
        table.add_row(
            rule.path,
            rule.description or "-",
            ", ".join(rule.globs) or "-",
            "yes" if rule.always_apply else "no",
        )
    console.print(table)


@app.command()
def validate(
    root: RootArgument = Path("."),
    rules_dir: RulesDirOption = None,
    env_file: EnvFileOption = None,
) -> None:
    """Parse and validate every rule document."""
    root = root.resolve()
    settings = _load_settings(root, env_file, rules_dir=rules_dir)
    rule_set = _load_rule_set(root, settings)

    problems = rule_set.validate()
    if not problems:
        console.print(f"[green]All {len(rule_set)} rule(s) are valid[/green]")
        return

    for path, issues in problems.items():
        console.print(f"[red]{path}[/red]: {', '.join(issues)}")
    raise typer.Exit(1)


@app.command()
def files(
    root: RootArgument = Path("."),
    env_file: EnvFileOption = None,
) -> None:
    """Show the files a review would cover."""
    root = root.resolve()
    settings = _load_settings(root, env_file)
    discovered = _discover(root, settings)

    console.print(build_file_tree(discovered, label=root.name or str(root)))
    console.print(f"\n{len(discovered)} file(s)")


@app.command()
def providers(env_file: EnvFileOption = None) -> None:
    """List provider backends and whether each is available."""
    settings = load_settings(env_file)
    available = set(get_available_providers(settings))

    table = Table(title="Providers")
    table.add_column("Provider", style="cyan")
    table.add_column("Available")

    for name in get_all_provider_types():
        table.add_row(name, "[green]yes[/green]" if name in available else "[red]no[/red]")
    console.print(table)


if __name__ == "__main__":
    app()
