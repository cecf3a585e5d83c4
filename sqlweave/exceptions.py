from collections.abc import Generator
from contextlib import contextmanager
from typing import Any, Optional

__all__ = (
    "DatabaseConnectionError",
    "ImproperConfigurationError",
    "IntegrityError",
    "NotFoundError",
    "RepositoryError",
    "SQLBuilderError",
    "SQLParsingError",
    "SQLWeaveError",
    "TransactionError",
    "wrap_exceptions",
)


class SQLWeaveError(Exception):
    """Base exception class from which all sqlweave exceptions inherit."""

    detail: str

    def __init__(self, *args: Any, detail: str = "") -> None:
        """Initialize ``SQLWeaveError``.

        Args:
            *args: args are converted to :class:`str` before passing to :class:`Exception`
            detail: detail of the exception.
        """
        str_args = [str(arg) for arg in args if arg]
        if not detail:
            if str_args:
                detail, *str_args = str_args
            elif hasattr(self, "detail"):
                detail = self.detail
        self.detail = detail
        super().__init__(*str_args)

    def __repr__(self) -> str:
        if self.detail:
            return f"{self.__class__.__name__} - {self.detail}"
        return self.__class__.__name__

    def __str__(self) -> str:
        return " ".join((*self.args, self.detail)).strip()


class SQLBuilderError(SQLWeaveError):
    """Issues building or generating SQL statements.

    Raised by ``build()`` for construction-time problems: a mutating statement
    without a WHERE clause, HAVING without GROUP BY, an empty insert list, an
    unknown operator, and similar misuse detected before any network call.
    """

    def __init__(self, message: Optional[str] = None) -> None:
        if message is None:
            message = "Issues building SQL statement."
        super().__init__(message)


class SQLParsingError(SQLWeaveError):
    """The database rejected the statement text."""

    def __init__(self, message: Optional[str] = None) -> None:
        if message is None:
            message = "Issues parsing SQL statement."
        super().__init__(message)


class ImproperConfigurationError(SQLWeaveError):
    """Improper configuration error."""


class DatabaseConnectionError(SQLWeaveError):
    """Connectivity or pool failure reported by the driver."""


class TransactionError(SQLWeaveError):
    """A transaction could not be started, committed or rolled back.

    The message is deliberately generic; the underlying cause is logged and
    chained as ``__cause__``.
    """


class RepositoryError(SQLWeaveError):
    """Base repository exception type."""


class IntegrityError(RepositoryError):
    """Data integrity error."""


class NotFoundError(RepositoryError):
    """An identity does not exist."""


@contextmanager
def wrap_exceptions(wrap_exceptions: bool = True) -> Generator[None, None, None]:
    try:
        yield

    except SQLWeaveError:
        raise
    except Exception as exc:
        if wrap_exceptions is False:
            raise
        msg = "An error occurred during the operation."
        raise RepositoryError(detail=msg) from exc
