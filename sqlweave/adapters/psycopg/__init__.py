from sqlweave.adapters.psycopg.config import PsycopgConfig, PsycopgConnectionConfig, PsycopgPoolConfig
from sqlweave.adapters.psycopg.driver import PsycopgPool, PsycopgTransaction, handle_database_exceptions

__all__ = (
    "PsycopgConfig",
    "PsycopgConnectionConfig",
    "PsycopgPool",
    "PsycopgPoolConfig",
    "PsycopgTransaction",
    "handle_database_exceptions",
)
