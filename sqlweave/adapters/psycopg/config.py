"""Psycopg pool configuration using TypedDict."""

from typing import TYPE_CHECKING, Any, Optional, TypedDict

from psycopg_pool import ConnectionPool
from typing_extensions import NotRequired

from sqlweave.adapters.psycopg.driver import PsycopgPool, handle_database_exceptions
from sqlweave.exceptions import ImproperConfigurationError
from sqlweave.utils.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

    from psycopg import Connection

logger = get_logger("adapters.psycopg")

__all__ = ("PsycopgConfig", "PsycopgConnectionConfig", "PsycopgPoolConfig")


class PsycopgConnectionConfig(TypedDict, total=False):
    """Connection parameters handed to every pooled ``psycopg.connect()``."""

    host: NotRequired[str]
    """Database server host."""

    port: NotRequired[int]
    """Database server port."""

    user: NotRequired[str]
    """Database user."""

    password: NotRequired[str]
    """Database password."""

    dbname: NotRequired[str]
    """Database name."""

    connect_timeout: NotRequired[int]
    """Connection timeout in seconds."""

    options: NotRequired[str]
    """Command-line options sent to the server, e.g. ``-c statement_timeout=5000``."""

    application_name: NotRequired[str]
    """Application name for logging and statistics."""

    sslmode: NotRequired[str]
    """SSL mode (disable, prefer, require, etc.)."""


class PsycopgPoolConfig(TypedDict, total=False):
    """Parameters for ``psycopg_pool.ConnectionPool()``."""

    conninfo: NotRequired[str]
    """Connection string in libpq format."""

    min_size: NotRequired[int]
    """Minimum number of connections in the pool."""

    max_size: NotRequired[int]
    """Maximum number of connections in the pool."""

    name: NotRequired[str]
    """Name of the connection pool."""

    timeout: NotRequired[float]
    """Timeout for acquiring connections."""

    max_waiting: NotRequired[int]
    """Maximum number of waiting clients."""

    max_lifetime: NotRequired[float]
    """Maximum connection lifetime."""

    max_idle: NotRequired[float]
    """Maximum idle time for connections."""

    reconnect_timeout: NotRequired[float]
    """Time spent retrying a failed connection before giving up."""

    num_workers: NotRequired[int]
    """Number of background workers."""

    configure: NotRequired["Callable[[Connection[Any]], None]"]
    """Callback to configure new connections."""


class PsycopgConfig:
    """Lazily creates a psycopg connection pool and wraps it for the service.

    Args:
        pool_config: Pool parameters.
        connection_config: Connection parameters merged into the pool's
            ``kwargs``.
    """

    __slots__ = ("_adapter", "connection_config", "pool_config", "pool_instance")

    def __init__(
        self,
        pool_config: "Optional[PsycopgPoolConfig]" = None,
        connection_config: "Optional[PsycopgConnectionConfig]" = None,
    ) -> None:
        self.pool_config: PsycopgPoolConfig = pool_config or {}
        self.connection_config: PsycopgConnectionConfig = connection_config or {}
        self.pool_instance: Optional[ConnectionPool[Any]] = None
        self._adapter: Optional[PsycopgPool] = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(pool_config={self.pool_config!r}, connected={self.pool_instance is not None})"

    @property
    def pool_kwargs(self) -> "dict[str, Any]":
        if not self.pool_config.get("conninfo") and not self.connection_config:
            msg = "psycopg configuration requires a conninfo string or connection parameters"
            raise ImproperConfigurationError(msg)
        pool_kwargs: dict[str, Any] = {"conninfo": "", **self.pool_config}
        if self.connection_config:
            pool_kwargs["kwargs"] = dict(self.connection_config)
        return pool_kwargs

    def create_pool(self) -> "ConnectionPool[Any]":
        """Create and open the underlying connection pool."""
        logger.info("Creating psycopg connection pool", extra={"extra_fields": {"adapter": "psycopg"}})
        pool_kwargs = self.pool_kwargs
        with handle_database_exceptions():
            try:
                pool = ConnectionPool(open=True, **pool_kwargs)
            except Exception:
                logger.exception("Failed to create psycopg connection pool")
                raise
        logger.info("psycopg connection pool created", extra={"extra_fields": {"adapter": "psycopg"}})
        return pool

    def provide_pool(self) -> PsycopgPool:
        """Return the pool adapter, creating the pool on first use."""
        if self._adapter is None:
            if self.pool_instance is None:
                self.pool_instance = self.create_pool()
            self._adapter = PsycopgPool(self.pool_instance)
        return self._adapter

    def close_pool(self) -> None:
        """Close the pool if it was created."""
        if self.pool_instance is None:
            return
        logger.info("Closing psycopg connection pool", extra={"extra_fields": {"adapter": "psycopg"}})
        try:
            self.pool_instance.close()
        finally:
            self.pool_instance = None
            self._adapter = None
