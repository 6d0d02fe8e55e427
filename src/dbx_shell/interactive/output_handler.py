from abc import ABC, abstractmethod
from typing import Any, List, Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.pretty import Pretty
from rich.table import Table
from rich.tree import Tree

from ..core.models import ConnectionDescriptor, LayoutNode
from .commands import Command, HelpCommand, LayoutView, ResultsView

# A single, shared console instance for all rich output in the REPL
console = Console()


class IOutputHandler(ABC):
    """
    An abstract interface for handling the output of executed commands.
    This decouples the CommandExecutor from the presentation layer.
    """

    @abstractmethod
    async def handle_result(self, result: Any, executable: Optional[Command]):
        """
        Processes and displays the final result of a command.

        Args:
            result: The value returned by the command, or an {"error": ...} dict.
            executable: The parsed command object itself, used to understand context.
        """
        pass


def _add_layout_children(branch: Tree, nodes: List[LayoutNode]):
    for node in nodes:
        label = f"{escape(node.name)} [dim]({node.kind})[/dim]"
        _add_layout_children(branch.add(label), node.children)


class RichConsoleHandler(IOutputHandler):
    """Renders command results to the terminal using the rich library."""

    async def handle_result(self, result: Any, executable: Optional[Command]):
        if result is None:
            return

        if isinstance(result, dict) and "error" in result:
            console.print(f"[bold red]Runtime Error:[/bold red] {result['error']}")
            return

        if isinstance(executable, HelpCommand):
            console.print(result, markup=False, highlight=False)
            return

        if isinstance(result, str):
            console.print(f"[bold green]✓[/bold green] {result}")
            return

        if isinstance(result, ResultsView):
            for line in result.lines:
                console.print(line, markup=False, highlight=False)
            return

        if isinstance(result, LayoutView):
            tree = Tree(f"[bold cyan]{escape(result.connection_id)}[/bold cyan]")
            _add_layout_children(tree, result.nodes)
            console.print(tree)
            return

        if isinstance(result, ConnectionDescriptor):
            panel_content = (
                f"[bold]ID:[/bold] [cyan]{escape(result.id)}[/cyan]\n"
                f"[bold]Name:[/bold] {escape(result.name)}\n"
                f"[bold]Type:[/bold] [magenta]{result.kind}[/magenta]\n"
                f"[bold]URL:[/bold] {escape(result.url)}"
            )
            console.print(Panel(panel_content, title="Connection", border_style="yellow"))
            return

        if isinstance(result, list) and all(
            isinstance(item, ConnectionDescriptor) for item in result
        ):
            if not result:
                console.print("[dim]No connections registered.[/dim]")
                return
            table = Table(title="[bold]Connections[/bold]", box=box.ROUNDED)
            table.add_column("ID", style="cyan", overflow="fold")
            table.add_column("Name", style="green")
            table.add_column("Type", style="magenta")
            for conn in result:
                table.add_row(escape(conn.id), escape(conn.name), escape(conn.kind))
            console.print(table)
            return

        console.print(Pretty(result))
