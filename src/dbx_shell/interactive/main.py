import asyncio
from typing import Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.history import FileHistory

from ..config import load_connections, load_settings
from ..core.session import Session
from ..engine.sqlalchemy_backend import SqlAlchemyBackend
from ..utils import DBX_HOME
from .completer import DbxCompleter
from .executor import CommandExecutor, console
from .output_handler import RichConsoleHandler
from .surface_provider import BufferSurfaceProvider


def build_session(window_command: Optional[str] = None) -> Session:
    """Creates a session over the configured connections and the built-in backend."""
    settings = load_settings()
    return Session(
        backend=SqlAlchemyBackend(page_size=settings.page_size),
        provider=BufferSurfaceProvider(),
        connections=load_connections(),
        window_command=window_command or settings.window_command,
    )


def start_repl():
    """Starts the main Read-Eval-Print-Loop (REPL) for the interactive shell."""
    DBX_HOME.mkdir(exist_ok=True, parents=True)
    history_file = DBX_HOME / "repl_history"
    session = build_session()
    executor = CommandExecutor(session, RichConsoleHandler())
    prompt_session = PromptSession(
        history=FileHistory(str(history_file)),
        completer=DbxCompleter(session),
        complete_while_typing=True,
    )

    console.print("Welcome to the dbx shell! Type .help for commands, Ctrl+D to quit.")
    if session.active_id is None:
        console.print(
            "[yellow]No connections configured. Add one with `dbx connection add`.[/yellow]"
        )

    async def repl_main():
        while True:
            try:
                command_text = await prompt_session.prompt_async(
                    f"{session.active_id or 'dbx'}> "
                )
                if command_text.strip().lower() in [".exit", ".quit", "exit", "quit"]:
                    break
                await executor.execute(command_text)
            except KeyboardInterrupt:
                print()
                continue
            except EOFError:
                print()
                break

    asyncio.run(repl_main())
    print("Exiting dbx shell. Goodbye!")
