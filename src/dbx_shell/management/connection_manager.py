from typing import List

import structlog
import yaml
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..config import CONNECTIONS_FILE_NAME, read_connection_entries
from ..core.models import ConnectionDescriptor
from ..utils import DBX_HOME

logger = structlog.get_logger(__name__)

# Use a single, shared console for all rich output.
console = Console()


class ConnectionManager:
    """A service for managing the connections saved in DBX_HOME."""

    def __init__(self):
        DBX_HOME.mkdir(exist_ok=True, parents=True)
        self.connections_file = DBX_HOME / CONNECTIONS_FILE_NAME

    def saved_connections(self) -> List[ConnectionDescriptor]:
        return [
            ConnectionDescriptor.from_mapping(entry)
            for entry in read_connection_entries(self.connections_file)
        ]

    def list_connections(self):
        """Prints all saved connections."""
        connections = self.saved_connections()
        if not connections:
            console.print("No connections found. Create one with `dbx connection add`.")
            return

        table = Table(title="Saved Connections")
        table.add_column("Name", style="cyan")
        table.add_column("Type", style="magenta")
        table.add_column("ID", style="green")

        for conn in sorted(connections, key=lambda c: c.name):
            table.add_row(escape(conn.name), escape(conn.kind), escape(conn.id))

        console.print(table)

    def add_connection(self, name: str, kind: str, url: str) -> bool:
        """Saves a new connection. Returns False if one with the same id exists."""
        descriptor = ConnectionDescriptor.from_mapping(
            {"name": name, "type": kind, "url": url}
        )
        entries = read_connection_entries(self.connections_file)
        for entry in entries:
            if ConnectionDescriptor.from_mapping(entry).id == descriptor.id:
                console.print(
                    f"[yellow]Connection '[cyan]{descriptor.id}[/cyan]' already exists.[/yellow]"
                )
                return False

        entries.append({"name": descriptor.name, "type": descriptor.kind, "url": url})
        self.connections_file.write_text(
            yaml.dump({"connections": entries}, sort_keys=False)
        )
        logger.info("connection_manager.saved", connection_id=descriptor.id)
        console.print(
            f"✅ Connection '{descriptor.name}' saved to [dim]{self.connections_file}[/dim]"
        )
        return True
