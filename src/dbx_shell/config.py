import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog
import yaml
from dotenv import dotenv_values
from jinja2 import Environment, StrictUndefined, TemplateError
from pydantic import BaseModel, Field, ValidationError

from .core.models import ConnectionDescriptor
from .core.surface import DEFAULT_WINDOW_COMMAND
from .errors import ConfigError
from .utils import DBX_HOME

logger = structlog.get_logger(__name__)

CONNECTIONS_FILE_NAME = "connections.yaml"
SECRETS_FILE_NAME = "secrets.env"
SETTINGS_FILE_NAME = "settings.yaml"

# Connection urls use `${VAR}` placeholders; an unknown name is an error.
url_env = Environment(
    variable_start_string="${",
    variable_end_string="}",
    undefined=StrictUndefined,
)


class Settings(BaseModel):
    """User settings read from settings.yaml."""

    page_size: int = Field(100, ge=1, description="Rows shown per results page.")
    window_command: str = Field(
        DEFAULT_WINDOW_COMMAND,
        description="Editor command used to open the results window.",
    )


def _read_yaml(path: Path) -> Any:
    try:
        with open(path, "r") as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Could not parse '{path}': {e}") from e


def load_settings(home: Optional[Path] = None) -> Settings:
    path = (home or DBX_HOME) / SETTINGS_FILE_NAME
    if not path.is_file():
        return Settings()
    data = _read_yaml(path) or {}
    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings in '{path}': {e}") from e


def load_secrets(home: Optional[Path] = None) -> Dict[str, str]:
    """Returns the process environment overlaid with the values in secrets.env."""
    values: Dict[str, str] = dict(os.environ)
    path = (home or DBX_HOME) / SECRETS_FILE_NAME
    if path.is_file():
        values.update({k: v for k, v in dotenv_values(path).items() if v is not None})
    return values


def read_connection_entries(path: Path) -> List[Dict[str, Any]]:
    """Reads the raw connection entries from a connections file, without validation."""
    if not path.is_file():
        return []
    data = _read_yaml(path)
    if data is None:
        return []
    if isinstance(data, dict):
        data = data.get("connections") or []
    if not isinstance(data, list):
        raise ConfigError(f"'{path}' must contain a list of connections.")
    for entry in data:
        if not isinstance(entry, dict):
            raise ConfigError(f"Invalid connection entry in '{path}': {entry!r}")
    return data


def render_url(url: str, context: Dict[str, str]) -> str:
    """Fills the `${VAR}` placeholders of a connection url."""
    try:
        return url_env.from_string(url).render(context)
    except TemplateError as e:
        raise ConfigError(f"Could not fill placeholders in url '{url}': {e}") from e


def load_connections(home: Optional[Path] = None) -> List[ConnectionDescriptor]:
    """
    Loads the connections configured in DBX_HOME/connections.yaml.

    `${VAR}` placeholders in urls are filled from secrets.env, falling back
    to the environment, so passwords never have to live in the connections file.
    """
    home = home or DBX_HOME
    path = home / CONNECTIONS_FILE_NAME
    secrets = load_secrets(home)

    descriptors = []
    for entry in read_connection_entries(path):
        entry = dict(entry)
        if isinstance(entry.get("url"), str):
            entry["url"] = render_url(entry["url"], secrets)
        descriptors.append(ConnectionDescriptor.from_mapping(entry))

    logger.debug("config.connections.loaded", path=str(path), count=len(descriptors))
    return descriptors
