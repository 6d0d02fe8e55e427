class DbxError(Exception):
    """Base class for every error raised by the dbx shell."""


class ConfigError(DbxError):
    """A connection descriptor or configuration file is missing a required value."""


class UnknownConnection(DbxError):
    """A command referenced a connection id that is not registered."""

    def __init__(self, connection_id: str):
        self.connection_id = connection_id
        super().__init__(f"Unknown connection '{connection_id}'.")


class BackendError(DbxError):
    """The execution backend failed while handling a forwarded command."""

    def __init__(self, operation: str, connection_id: str | None, message: str):
        self.operation = operation
        self.connection_id = connection_id
        target = f" on '{connection_id}'" if connection_id else ""
        super().__init__(f"Backend '{operation}' failed{target}: {message}")


class SurfaceError(DbxError):
    """The results window or buffer could not be created or bound."""
