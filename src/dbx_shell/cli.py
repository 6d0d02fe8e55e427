import functools
import logging
import sys
from typing import Optional

import structlog
import typer
from rich.console import Console
from rich.traceback import Traceback

from dbx_shell.interactive.commands import snapshot
from dbx_shell.interactive.main import build_session, start_repl
from dbx_shell.management.connection_manager import ConnectionManager
from dbx_shell.state import APP_STATE


def setup_logging(verbose: bool):
    """
    Configures structlog for the entire application.
    - Default level: WARNING (clean REPL output)
    - Verbose level: DEBUG (for power users)
    - All logs are routed to stderr to keep stdout clean for piping.
    """
    log_level = logging.DEBUG if verbose else logging.WARNING

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.addHandler(logging.StreamHandler(sys.stderr))
    root_logger.setLevel(log_level)


def handle_exceptions(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        console = Console(stderr=True)
        try:
            return func(*args, **kwargs)
        except typer.Exit:
            raise
        except Exception as e:
            console.print(f"[bold red]Error:[/bold red] {e}")
            if APP_STATE.verbose_mode:
                console.print(
                    Traceback.from_exception(
                        type(e), e, e.__traceback__, show_locals=True
                    )
                )
            raise typer.Exit(code=1)

    return wrapper


# --- Main Application Definition ---
app = typer.Typer(
    name="dbx",
    help="Explore your databases from the terminal.",
    no_args_is_help=False,
    invoke_without_command=True,
    rich_markup_mode="markdown",
)

connection_app = typer.Typer(
    name="connection", help="Manage your saved connections.", no_args_is_help=True
)
app.add_typer(connection_app, name="connection")


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose DEBUG logging for detailed tracebacks.",
    ),
):
    APP_STATE.verbose_mode = verbose
    setup_logging(verbose)
    if ctx.invoked_subcommand is None:
        start_repl()


@app.command()
@handle_exceptions
def run(
    query: str = typer.Argument(..., help="The SQL statement to run."),
    on: Optional[str] = typer.Option(
        None, "--on", help="Connection id to run on (defaults to the first by id)."
    ),
):
    """Runs a single query and prints the first page of results."""
    session = build_session()
    session.execute(query, on)
    for line in snapshot(session).lines:
        print(line)


@connection_app.command("list")
@handle_exceptions
def connection_list():
    """Lists all saved connections."""
    ConnectionManager().list_connections()


@connection_app.command("add")
@handle_exceptions
def connection_add(
    name: str = typer.Option(..., "--name", help="Display name of the connection."),
    kind: str = typer.Option(
        ..., "--type", help="Driver type of the connection (e.g. sqlite, postgres)."
    ),
    url: str = typer.Option(
        ...,
        "--url",
        help="Connection url. `${VAR}` placeholders are read from secrets.env.",
    ),
):
    """Saves a new connection to connections.yaml."""
    if not ConnectionManager().add_connection(name=name, kind=kind, url=url):
        raise typer.Exit(code=1)
