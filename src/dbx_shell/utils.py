import os
import sys
from pathlib import Path

# --- Centralized Path Constant ---
# The single source of truth for the DBX_HOME path.
DBX_HOME = Path(os.getenv("DBX_HOME", Path.home() / ".dbx"))


def get_pkg_root() -> Path:
    """
    Gets the root directory of the dbx_shell package. This works correctly
    whether running from source or as a frozen PyInstaller executable.
    """
    if getattr(sys, "frozen", False):
        return Path(sys._MEIPASS) / "dbx_shell"
    else:
        return Path(__file__).parent


def resolve_path(path_str: str) -> Path:
    """
    Expands common path patterns into absolute paths.
    - `~` is expanded to the user's home directory.
    - `dbx-home:` is expanded relative to the DBX_HOME directory.
    """
    if path_str.startswith("dbx-home:"):
        relative_path = path_str.split(":", 1)[1]
        return (DBX_HOME / relative_path).resolve()
    return Path(path_str).expanduser().resolve()
