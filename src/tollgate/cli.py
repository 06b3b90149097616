"""
CLI entry point for Tollgate.

Commands:
    evaluate        Evaluate a proposed tool call against the policy
    rules           List the active policy rules
    check-url       Check a URL against the browser URL guard
    detect-overlay  Scan a page snapshot file for blocking overlays
    browse          Run a browser task through the gated agent loop

Architecture Note:
    The CLI is intentionally thin - it parses arguments, loads the config,
    and delegates to the policy store, the guards and the tools.
"""

import json
import logging
import threading
import traceback
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from tollgate import __version__
from tollgate.browser.overlay import detect_blocking_overlay
from tollgate.config import Settings
from tollgate.confirmation import ConfirmationRequest
from tollgate.errors import PolicyDeniedError, TollgateError
from tollgate.guards.url import UrlGuard
from tollgate.policy.injector import resolve_path
from tollgate.schema import (
    ApprovalMode,
    ConfirmationOutcome,
    Decision,
    TollgateConfig,
    ToolResultStatus,
    load_config,
)
from tollgate.tools.browser import BrowserTool

app = typer.Typer(
    name="tollgate",
    help="Policy gating and safety guards for model-driven agents.",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)

ConfigOption = Annotated[
    Optional[Path],
    typer.Option(
        "--config",
        "-c",
        help="Path to the Tollgate YAML config.",
        exists=True,
        readable=True,
        resolve_path=True,
    ),
]
JsonOption = Annotated[bool, typer.Option("--json", help="Output results in JSON format.")]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]tollgate[/bold] version {__version__}")
        raise typer.Exit()


def configure_logging(verbose: bool) -> None:
    """Route log records through rich when --verbose is given."""
    if not verbose:
        return
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True)],
        force=True,
    )


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Enable debug logging."),
    ] = False,
) -> None:
    """
    Tollgate - authorization and safety gating for agent actions.

    Evaluate tool calls against priority-ordered policy rules, and run a
    browser agent behind URL, rate-limit and sensitive-action guards.
    """
    configure_logging(verbose)


def _load_settings(config_path: Path | None) -> Settings:
    try:
        config = load_config(config_path) if config_path else TollgateConfig()
    except TollgateError as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from e
    return Settings.from_config(config, Path.cwd())


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


@app.command()
def evaluate(
    tool: Annotated[str, typer.Argument(help="Tool name, e.g. write_file.")],
    args: Annotated[
        str,
        typer.Option("--args", "-a", help="Call arguments as a JSON object."),
    ] = "{}",
    mode: Annotated[
        Optional[ApprovalMode],
        typer.Option("--mode", "-m", help="Approval mode (defaults to the config's)."),
    ] = None,
    config_path: ConfigOption = None,
    json_output: JsonOption = False,
) -> None:
    """
    Evaluate a proposed tool call against the policy.

    Exits with code 1 when the decision is deny.

    Example:
        $ tollgate evaluate write_file --args '{"file_path": "/tmp/x"}' --mode plan
    """
    try:
        call_args = json.loads(args)
    except json.JSONDecodeError as e:
        err_console.print(f"[red]--args is not valid JSON: {e}[/red]")
        raise typer.Exit(code=1) from e
    if not isinstance(call_args, dict):
        err_console.print("[red]--args must be a JSON object[/red]")
        raise typer.Exit(code=1)

    settings = _load_settings(config_path)
    if isinstance(call_args.get("file_path"), str):
        # Same canonical form the file tools evaluate with
        call_args["file_path"] = resolve_path(call_args["file_path"], settings.target_dir)
    active_mode = mode or settings.approval_mode
    decision = settings.policy_store.evaluate(tool, call_args, active_mode)

    if json_output:
        _print_json({"tool": tool, "mode": active_mode.value, **decision.model_dump(mode="json")})
    else:
        style = {
            Decision.ALLOW: "green",
            Decision.DENY: "red",
            Decision.ASK_USER: "yellow",
        }[decision.decision]
        console.print(
            f"[{style}]{decision.decision.value}[/{style}] "
            f"[bold]{tool}[/bold] in [cyan]{active_mode.value}[/cyan] mode"
        )
        console.print(f"[dim]{decision.reason}[/dim]")

    if decision.decision == Decision.DENY:
        raise typer.Exit(code=1)


@app.command()
def rules(
    config_path: ConfigOption = None,
    json_output: JsonOption = False,
) -> None:
    """List the active policy rules (built-in defaults, then config rules)."""
    settings = _load_settings(config_path)
    active = settings.policy_store.rules

    if json_output:
        _print_json([
            {
                "id": rule.id,
                "tool_name": rule.tool_name,
                "args_pattern": rule.args_pattern.pattern if rule.args_pattern else None,
                "decision": rule.decision.value,
                "priority": rule.priority,
                "modes": sorted(m.value for m in rule.modes),
                "source": rule.source,
            }
            for rule in active
        ])
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", style="dim")
    table.add_column("Tool", style="cyan")
    table.add_column("Pattern")
    table.add_column("Decision")
    table.add_column("Priority", justify="right")
    table.add_column("Modes")
    table.add_column("Source", style="dim")

    for rule in active:
        table.add_row(
            rule.id,
            rule.tool_name or "*",
            rule.args_pattern.pattern if rule.args_pattern else "",
            rule.decision.value,
            str(rule.priority),
            ", ".join(sorted(m.value for m in rule.modes)) or "all",
            rule.source,
        )

    console.print(table)
    console.print(f"[dim]{len(active)} rules[/dim]")


@app.command("check-url")
def check_url(
    url: Annotated[str, typer.Argument(help="URL to check.")],
    allow: Annotated[
        Optional[list[str]],
        typer.Option("--allow", help="Allowed URL pattern (repeatable, * = any characters)."),
    ] = None,
    config_path: ConfigOption = None,
    json_output: JsonOption = False,
) -> None:
    """
    Check a URL against the browser URL guard.

    Exits with code 1 when the URL is blocked.
    """
    patterns = list(allow or [])
    if config_path:
        patterns = _load_settings(config_path).browser.allowed_domains + patterns

    guard = UrlGuard(patterns)
    allowed = guard.is_allowed(url)

    if json_output:
        _print_json({"url": url, "allowed": allowed, "patterns": list(guard.effective_patterns)})
    elif allowed:
        console.print(f"[green]✓[/green] allowed: {url}")
    else:
        console.print(f"[red]✗[/red] blocked: {url}")

    if not allowed:
        raise typer.Exit(code=1)


@app.command("detect-overlay")
def detect_overlay(
    snapshot_file: Annotated[
        Path,
        typer.Argument(
            help="File containing an accessibility tree / page snapshot.",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ],
    json_output: JsonOption = False,
) -> None:
    """Scan a page snapshot for cookie banners, modals and other overlays."""
    try:
        snapshot = snapshot_file.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        err_console.print(f"[red]Cannot read {snapshot_file}: {e}[/red]")
        raise typer.Exit(code=1) from e

    result = detect_blocking_overlay(snapshot)
    if json_output:
        _print_json(result.model_dump())
        return

    if not result.has_overlay:
        console.print("[green]No overlay detected[/green]")
        return
    console.print("[yellow]Overlay detected[/yellow]")
    console.print(f"  {result.signature}")
    console.print(f"  [dim]{result.suggested_action}[/dim]")


def _ask(request: ConfirmationRequest, assume_yes: bool) -> ConfirmationOutcome:
    if assume_yes:
        return ConfirmationOutcome.PROCEED_ONCE
    console.print(f"[bold]{request.title}[/bold]")
    console.print(request.prompt)
    if typer.confirm("Proceed?", default=False):
        return ConfirmationOutcome.PROCEED_ONCE
    return ConfirmationOutcome.CANCEL


@app.command()
def browse(
    task: Annotated[str, typer.Argument(help="What the browser agent should do.")],
    config_path: ConfigOption = None,
    allow_domain: Annotated[
        Optional[list[str]],
        typer.Option("--allow-domain", help="Allowed URL pattern (repeatable)."),
    ] = None,
    headless: Annotated[
        bool,
        typer.Option("--headless", help="Run the browser without a window."),
    ] = False,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Answer yes to every confirmation."),
    ] = False,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Show full error tracebacks."),
    ] = False,
    json_output: JsonOption = False,
) -> None:
    """
    Run a browser task through the gated agent loop.

    Example:
        $ tollgate browse "Find the latest requests release" --allow-domain 'https://*.pypi.org'
    """
    settings = _load_settings(config_path)
    overrides: dict[str, Any] = {}
    if allow_domain:
        overrides["allowed_domains"] = settings.browser.allowed_domains + list(allow_domain)
    if headless:
        overrides["headless"] = True
    if overrides:
        settings.browser = settings.browser.model_copy(update=overrides)

    tool = BrowserTool(
        confirm=lambda request: _ask(request, yes),
        on_progress=None if json_output else (lambda msg: console.print(f"[dim]{msg}[/dim]")),
    )
    abort = threading.Event()

    try:
        invocation = tool.build({"task": task}, settings)
        request = invocation.should_confirm_execute(abort)
        if request:
            request.on_confirm(_ask(request, yes))
        result = invocation.execute(abort)
    except PolicyDeniedError as e:
        err_console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(code=1) from e
    except TollgateError as e:
        err_console.print(f"[red]{e}[/red]")
        if debug:
            err_console.print(f"[dim]{traceback.format_exc()}[/dim]")
        raise typer.Exit(code=1) from e
    except KeyboardInterrupt:
        abort.set()
        err_console.print("[yellow]Interrupted[/yellow]")
        raise typer.Exit(code=130) from None

    if json_output:
        _print_json({
            "status": result.status.value,
            "content": result.content,
            "error": result.error,
            "metadata": result.metadata,
        })
    elif result.status == ToolResultStatus.SUCCESS:
        console.print(f"[green]✓[/green] {result.content}")
    elif result.status == ToolResultStatus.CANCELLED:
        console.print(f"[yellow]{result.content}[/yellow]")
    else:
        console.print(f"[red]✗ {result.error}[/red]")

    if result.status == ToolResultStatus.ERROR:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
