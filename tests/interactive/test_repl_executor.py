from unittest.mock import AsyncMock

import pytest
from prompt_toolkit.document import Document

from dbx_shell.core.models import ConnectionDescriptor
from dbx_shell.core.session import Session
from dbx_shell.interactive.commands import (
    DetailsCommand,
    HistoryCommand,
    LayoutView,
    PageCommand,
    QueryCommand,
    ResultsView,
    SaveCommand,
    UseCommand,
)
from dbx_shell.interactive.completer import DbxCompleter
from dbx_shell.interactive.executor import CommandExecutor


@pytest.fixture
def executor(session) -> CommandExecutor:
    """Provides an executor over the recording backend with a mocked output handler."""
    return CommandExecutor(session, AsyncMock())


def test_plain_text_is_a_query(executor: CommandExecutor):
    command = executor.parse("  select * from users  ")
    assert isinstance(command, QueryCommand)
    assert command.query == "select * from users"


def test_dot_commands_are_parsed(executor: CommandExecutor):
    use = executor.parse(".use analyticspg")
    assert isinstance(use, UseCommand)
    assert use.connection_id == "analyticspg"

    page = executor.parse(".prev --on warehousesqlite")
    assert isinstance(page, PageCommand)
    assert (page.direction, page.on) == (-1, "warehousesqlite")

    history = executor.parse(".history 12")
    assert isinstance(history, HistoryCommand)
    assert history.history_id == "12"

    details = executor.parse('.details "[empty name]pg"')
    assert isinstance(details, DetailsCommand)
    assert details.connection_id == "[empty name]pg"


def test_save_with_quoted_path_and_connection(executor: CommandExecutor):
    command = executor.parse('.save csv "/tmp/my results.csv" --on analyticspg')

    assert isinstance(command, SaveCommand)
    assert command.fmt == "csv"
    assert command.destination == "/tmp/my results.csv"
    assert command.on == "analyticspg"


@pytest.mark.parametrize(
    "text, message",
    [
        (".bogus", "Unknown command"),
        (".use", "Usage: .use ID"),
        (".next now", "Usage: .next"),
        ('.use "unterminated', "Could not parse"),
    ],
)
def test_bad_dot_commands(executor: CommandExecutor, text, message):
    with pytest.raises(ValueError, match=message):
        executor.parse(text)


@pytest.mark.asyncio
async def test_query_returns_results_view(executor: CommandExecutor, backend):
    result = await executor.execute("select 1")

    assert isinstance(result, ResultsView)
    assert result.lines == ["Loading..."]
    assert backend.calls_to("execute")[0][1:3] == ("analyticspg", "select 1")
    executor.output_handler.handle_result.assert_awaited_once()


@pytest.mark.asyncio
async def test_next_reports_backend_page(executor: CommandExecutor, backend):
    backend.page_results = [1]

    result = await executor.execute(".next")

    assert result.page_index == 1


@pytest.mark.asyncio
async def test_use_unknown_connection_is_reported_not_raised(executor: CommandExecutor):
    result = await executor.execute(".use nope")

    assert "No connection 'nope'" in result
    assert executor.session.active_id == "analyticspg"


@pytest.mark.asyncio
async def test_errors_are_passed_to_output_handler(executor: CommandExecutor):
    result = await executor.execute(".details missing")

    assert result == {"error": "UnknownConnection: Unknown connection 'missing'."}
    handled, command = executor.output_handler.handle_result.await_args.args
    assert handled == result
    assert isinstance(command, DetailsCommand)


@pytest.mark.asyncio
async def test_connections_and_layout(executor: CommandExecutor, backend):
    connections = await executor.execute(".connections")
    assert [c.name for c in connections] == ["analytics", "warehouse"]
    assert all(isinstance(c, ConnectionDescriptor) for c in connections)

    layout = await executor.execute(".layout --on warehousesqlite")
    assert isinstance(layout, LayoutView)
    assert layout.connection_id == "warehousesqlite"
    assert layout.nodes == []


@pytest.mark.asyncio
async def test_blank_input_is_ignored(executor: CommandExecutor):
    assert await executor.execute("   ") is None
    executor.output_handler.handle_result.assert_not_awaited()


def test_completer_suggests_commands_and_ids(session):
    completer = DbxCompleter(session)

    commands = [c.text for c in completer.get_completions(Document(".us"), None)]
    assert commands == ["use"]

    ids = [c.text for c in completer.get_completions(Document(".use "), None)]
    assert ids == ["analyticspg", "warehousesqlite"]

    partial = [c.text for c in completer.get_completions(Document("select --on wa"), None)]
    assert partial == ["warehousesqlite"]


@pytest.mark.asyncio
async def test_details_without_any_connection(backend, provider):
    executor = CommandExecutor(Session(backend=backend, provider=provider), AsyncMock())

    result = await executor.execute(".details")

    assert result == {"error": "UnknownConnection: Unknown connection ''."}
