"""CLI commands for reqvars."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from reqvars.bridge import GlobalVariableBridge
from reqvars.cli.output import print_outcome, print_script_result
from reqvars.config import EngineConfig, load_config
from reqvars.engine import RequestEngine
from reqvars.errors import ReqVarsError
from reqvars.observability import configure_logging
from reqvars.paths import unwrap_body
from reqvars.scripting import SCRIPT_TEMPLATES, ScriptContext, ScriptSandbox
from reqvars.variables import TemplateResolver, VariableScopeStack
from reqvars.workspace import (
    Workspace,
    load_request,
    load_response,
    load_workspace,
    save_globals,
)

workspace_option = click.option(
    "--workspace",
    "-w",
    type=click.Path(exists=True, dir_okay=False),
    help="Workspace YAML with globals, environments and sessions",
)


def _open_workspace(path: str | None, env: str | None = None, session: str | None = None) -> Workspace:
    try:
        workspace = load_workspace(path)
        if env:
            workspace.environments.activate(env)
        if session:
            workspace.sessions.activate(session)
    except ReqVarsError as e:
        raise click.ClickException(str(e)) from e
    return workspace


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--config", "-c", type=click.Path(exists=True), help="Path to config file")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config: str | None) -> None:
    """reqvars - variable resolution and post-response scripting for HTTP requests."""
    ctx.ensure_object(dict)

    try:
        config_obj = load_config(config)
    except ReqVarsError as e:
        raise click.ClickException(str(e)) from e

    ctx.obj["config"] = config_obj
    ctx.obj["verbose"] = verbose
    ctx.obj["console"] = Console()

    configure_logging(
        level="DEBUG" if verbose else config_obj.log_level,
        json_format=config_obj.json_logs,
    )


@cli.command()
@click.argument("template")
@workspace_option
@click.option("--env", "env", help="Environment to activate")
@click.option("--session", help="Session to activate")
@click.option("--strict", is_flag=True, help="Exit 1 if any placeholder stays unresolved")
def resolve(
    template: str,
    workspace: str | None,
    env: str | None,
    session: str | None,
    strict: bool,
) -> None:
    """Resolve {{placeholders}} in TEMPLATE and print the result."""
    ws = _open_workspace(workspace, env, session)
    snapshot = VariableScopeStack(ws.globals, ws.environments, ws.sessions).snapshot()
    resolver = TemplateResolver()

    click.echo(resolver.resolve(template, snapshot))

    missing = resolver.unresolved(template, snapshot)
    for token in missing:
        click.echo(f"unresolved: {token}", err=True)
    if strict and missing:
        sys.exit(1)


@cli.command("run-script")
@click.argument("script_file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--response",
    "-r",
    "response_file",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="Saved response JSON ({status, headers, data, duration})",
)
@workspace_option
@click.option("--save", is_flag=True, help="Write updated globals back to the workspace")
@click.pass_context
def run_script(
    ctx: click.Context,
    script_file: str,
    response_file: str,
    workspace: str | None,
    save: bool,
) -> None:
    """Run a post-script against a saved response."""
    config: EngineConfig = ctx.obj["config"]
    console: Console = ctx.obj["console"]

    ws = _open_workspace(workspace)
    try:
        response = load_response(response_file)
    except ReqVarsError as e:
        raise click.ClickException(str(e)) from e

    sandbox = ScriptSandbox.from_config(config)
    result = sandbox.run(
        Path(script_file).read_text(),
        ScriptContext.from_response(response),
        GlobalVariableBridge(ws.globals),
    )
    print_script_result(console, result)

    if save and workspace and result.generated_variables:
        save_globals(workspace, ws.globals)

    sys.exit(0 if result.success else 1)


@cli.command()
@click.argument("request_file", type=click.Path(exists=True, dir_okay=False))
@workspace_option
@click.option("--env", "env", help="Environment to activate")
@click.option("--session", help="Session to activate")
@click.option("--save", is_flag=True, help="Write updated globals back to the workspace")
@click.option("--body/--no-body", default=True, help="Print the response body")
@click.pass_context
def send(
    ctx: click.Context,
    request_file: str,
    workspace: str | None,
    env: str | None,
    session: str | None,
    save: bool,
    body: bool,
) -> None:
    """Resolve, send and post-process a request file."""
    config: EngineConfig = ctx.obj["config"]
    console: Console = ctx.obj["console"]

    ws = _open_workspace(workspace, env, session)
    try:
        request = load_request(request_file)
    except ReqVarsError as e:
        raise click.ClickException(str(e)) from e

    with RequestEngine(ws.globals, ws.environments, ws.sessions, config=config) as engine:
        outcome = engine.send(request, tab_id="cli")

    print_outcome(console, outcome)

    if body and outcome.response is not None:
        data = unwrap_body(outcome.response.data)
        if isinstance(data, (dict, list)):
            console.print(Syntax(json.dumps(data, indent=2, ensure_ascii=False), "json"))
        elif data is not None:
            console.print(str(data))

    if save and workspace and outcome.script_result and outcome.script_result.generated_variables:
        save_globals(workspace, ws.globals)

    sys.exit(1 if outcome.transport_failed or outcome.script_failed else 0)


@cli.command()
@workspace_option
@click.option("--env", "env", help="Environment to activate")
@click.option("--session", help="Session to activate")
@click.pass_context
def variables(ctx: click.Context, workspace: str | None, env: str | None, session: str | None) -> None:
    """Show the merged variables a send would resolve against."""
    console: Console = ctx.obj["console"]
    ws = _open_workspace(workspace, env, session)
    snapshot = VariableScopeStack(ws.globals, ws.environments, ws.sessions).snapshot()
    table = Table(title="Effective variables")
    table.add_column("Key", style="bold")
    table.add_column("Value", overflow="fold")
    for key, value in sorted(snapshot.items()):
        table.add_row(key, value)
    console.print(table)


@cli.command()
@click.argument("name", required=False)
def templates(name: str | None) -> None:
    """List starter post-scripts, or print one by NAME."""
    if name is None:
        for template_name in SCRIPT_TEMPLATES:
            click.echo(template_name)
        return
    if name not in SCRIPT_TEMPLATES:
        raise click.ClickException(f"Unknown template: {name}")
    click.echo(SCRIPT_TEMPLATES[name], nl=False)
