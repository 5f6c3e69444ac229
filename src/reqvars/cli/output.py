"""Rich rendering for CLI results."""

from __future__ import annotations

from collections.abc import Iterable

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from reqvars.engine import SendOutcome
from reqvars.models import Variable
from reqvars.scripting import SandboxResult

_LOG_STYLES = {
    "[LOG]": "white",
    "[WARN]": "yellow",
    "[ERROR]": "red",
    "[VARIABLE]": "cyan",
}


def _log_style(line: str) -> str:
    for prefix, style in _LOG_STYLES.items():
        if line.startswith(prefix):
            return style
    return "white"


def variables_table(variables: Iterable[Variable], title: str = "Variables") -> Table:
    table = Table(title=title, show_lines=False)
    table.add_column("Key", style="bold")
    table.add_column("Value", overflow="fold")
    table.add_column("Description", style="dim")
    for variable in variables:
        table.add_row(variable.key, variable.value, variable.description or "")
    return table


def print_script_result(console: Console, result: SandboxResult) -> None:
    """Logs, written variables and the verdict of one script run."""
    for line in result.logs:
        console.print(Text(line, style=_log_style(line)))

    if result.generated_variables:
        console.print(variables_table(result.generated_variables, title="Global variables written"))

    if result.success:
        console.print(f"[green]✓ Script completed[/green] ({result.duration_ms:.0f}ms)")
    else:
        kind = result.error_kind.value if result.error_kind else "Error"
        console.print(
            Panel(Text(result.error or ""), title=f"Script failed: {kind}", border_style="red")
        )


def print_outcome(console: Console, outcome: SendOutcome) -> None:
    """Summary of one send: request line, status, unresolved tokens, script."""
    request = outcome.resolved_request or outcome.request
    console.print(f"[bold]{request.method}[/bold] {escape(request.url)}")

    for token in outcome.unresolved:
        console.print(f"[yellow]! unresolved {escape(token)}[/yellow]")

    if outcome.response is None:
        console.print(f"[red]✗ Transport failed:[/red] {escape(outcome.error or '')}")
        return

    response = outcome.response
    style = "green" if response.ok else "red"
    console.print(
        f"[{style}]HTTP {response.status} {response.status_text}[/{style}] "
        f"({response.duration:.0f}ms)"
    )

    if outcome.script_result is not None:
        print_script_result(console, outcome.script_result)
