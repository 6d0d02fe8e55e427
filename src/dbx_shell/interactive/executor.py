from ast import literal_eval
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import structlog
from lark import Lark, Transformer, v_args
from lark.exceptions import LarkError
from rich.console import Console

from ..core.session import Session
from ..utils import get_pkg_root
from .commands import (
    CloseCommand,
    Command,
    ConnectionsCommand,
    DetailsCommand,
    HelpCommand,
    HistoryCommand,
    LayoutCommand,
    OpenCommand,
    PageCommand,
    QueryCommand,
    SaveCommand,
    UseCommand,
)
from .output_handler import IOutputHandler

console = Console()
logger = structlog.get_logger(__name__)


@dataclass
class DotCommand:
    name: str
    args: List[str] = field(default_factory=list)
    on: Optional[str] = None


@dataclass
class OnOption:
    connection_id: str


@v_args(inline=True)
class CommandTransformer(Transformer):
    """Transforms the Lark parse tree into a DotCommand."""

    def start(self, name, *items):
        args = [item for item in items if not isinstance(item, OnOption)]
        on = next((item.connection_id for item in items if isinstance(item, OnOption)), None)
        return DotCommand(name.value, args, on)

    def on_option(self, value):
        return OnOption(value)

    def arg(self, token):
        if token.type == "STRING":
            return literal_eval(token.value)
        return token.value


def _expect(cmd: DotCommand, minimum: int, maximum: int, usage: str):
    if not minimum <= len(cmd.args) <= maximum:
        raise ValueError(f"Usage: {usage}")


def _build_use(cmd: DotCommand) -> Command:
    _expect(cmd, 1, 1, ".use ID")
    return UseCommand(cmd.args[0])


def _build_details(cmd: DotCommand) -> Command:
    _expect(cmd, 0, 1, ".details [ID]")
    return DetailsCommand(cmd.args[0] if cmd.args else cmd.on)


def _build_history(cmd: DotCommand) -> Command:
    _expect(cmd, 1, 1, ".history ID [--on ID]")
    return HistoryCommand(cmd.args[0], on=cmd.on)


def _build_save(cmd: DotCommand) -> Command:
    _expect(cmd, 2, 2, ".save csv|json PATH [--on ID]")
    return SaveCommand(cmd.args[0], cmd.args[1], on=cmd.on)


def _no_args(factory: Callable[[DotCommand], Command], usage: str):
    def build(cmd: DotCommand) -> Command:
        _expect(cmd, 0, 0, usage)
        return factory(cmd)

    return build


BUILDERS: Dict[str, Callable[[DotCommand], Command]] = {
    "connections": _no_args(lambda c: ConnectionsCommand(), ".connections"),
    "use": _build_use,
    "details": _build_details,
    "next": _no_args(lambda c: PageCommand(1, on=c.on), ".next [--on ID]"),
    "prev": _no_args(lambda c: PageCommand(-1, on=c.on), ".prev [--on ID]"),
    "history": _build_history,
    "layout": _no_args(lambda c: LayoutCommand(on=c.on), ".layout [--on ID]"),
    "save": _build_save,
    "open": _no_args(lambda c: OpenCommand(), ".open"),
    "close": _no_args(lambda c: CloseCommand(), ".close"),
    "help": _no_args(lambda c: HelpCommand(), ".help"),
}


class CommandExecutor:
    """Parses REPL input into commands and runs them against the session."""

    def __init__(self, session: Session, output_handler: Optional[IOutputHandler] = None):
        self.session = session
        self.output_handler = output_handler
        grammar_path = get_pkg_root() / "interactive" / "grammar" / "dbx.lark"
        with open(grammar_path, "r", encoding="utf-8") as f:
            self.parser = Lark(f.read(), start="start", parser="lalr")
        self.transformer = CommandTransformer()

    def parse(self, command_text: str) -> Command:
        text = command_text.strip()
        if not text.startswith("."):
            return QueryCommand(text)

        try:
            dot_command = self.transformer.transform(self.parser.parse(text))
        except LarkError as e:
            raise ValueError(f"Could not parse command '{text}'. Type .help for usage.") from e
        logger.debug("executor.parsed", command=dot_command.name, args=dot_command.args)

        builder = BUILDERS.get(dot_command.name)
        if builder is None:
            raise ValueError(f"Unknown command '.{dot_command.name}'. Type .help for usage.")
        return builder(dot_command)

    async def execute(self, command_text: str) -> Any:
        """Runs one line of input and hands the result to the output handler."""
        if not command_text.strip():
            return None
        result = None
        command: Optional[Command] = None
        try:
            command = self.parse(command_text)
            logger.debug("executor.dispatch.begin", command_type=type(command).__name__)
            if command.produces_output:
                with console.status("Running...", spinner="dots"):
                    result = command.execute(self.session)
            else:
                result = command.execute(self.session)
        except Exception as e:
            logger.error("executor.execute.failed", error=str(e), exc_info=True)
            result = {"error": f"{type(e).__name__}: {e}"}
        if self.output_handler:
            await self.output_handler.handle_result(result, command)
        return result
