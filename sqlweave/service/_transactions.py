"""Unit-of-work helper running a callable inside one transaction."""

from typing import TYPE_CHECKING, Final, Optional, TypeVar

from sqlweave.exceptions import SQLWeaveError, TransactionError
from sqlweave.utils.logging import get_correlation_id, get_logger, set_correlation_id

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlweave.protocols import PoolProtocol, TransactionProtocol

__all__ = ("GENERIC_TRANSACTION_ERROR", "rollback_quietly", "use_transactions")

T = TypeVar("T")

GENERIC_TRANSACTION_ERROR: Final = "something went wrong"

logger = get_logger("service.transactions")


def rollback_quietly(tx: "TransactionProtocol") -> None:
    try:
        tx.rollback()
    except Exception:
        logger.exception("rollback failed")


def use_transactions(
    pool: "PoolProtocol",
    fn: "Callable[[TransactionProtocol], T]",
    hold_commit: bool = False,
    correlation_id: "Optional[str]" = None,
) -> T:
    """Run ``fn`` against a fresh transaction.

    The transaction is committed when ``fn`` returns and rolled back when it
    raises. sqlweave errors propagate unchanged; any other exception is
    logged with its traceback and replaced by a generic
    :class:`~sqlweave.exceptions.TransactionError` chained to it. Start and
    commit failures are reported the same generic way.

    With ``hold_commit=True`` a successful transaction is left open and the
    caller must commit or roll it back; failures are still rolled back.

    .. warning::

        A held transaction keeps its connection checked out and its locks
        held until the caller finishes it.

    Args:
        pool: Pool to start the transaction on.
        fn: Unit of work; receives the transaction.
        hold_commit: Leave a successful transaction open.
        correlation_id: Tagged onto every log record emitted while the
            unit of work runs; the previous id is restored afterwards.

    Raises:
        TransactionError: The transaction could not be started or committed,
            or ``fn`` raised a non-sqlweave exception.

    Returns:
        Whatever ``fn`` returns.
    """
    if correlation_id is None:
        return _run_transaction(pool, fn, hold_commit)
    previous = get_correlation_id()
    set_correlation_id(correlation_id)
    try:
        return _run_transaction(pool, fn, hold_commit)
    finally:
        set_correlation_id(previous)


def _run_transaction(pool: "PoolProtocol", fn: "Callable[[TransactionProtocol], T]", hold_commit: bool) -> T:
    try:
        tx = pool.begin()
    except Exception as exc:
        logger.error("can't start transaction: %s", exc)
        raise TransactionError(GENERIC_TRANSACTION_ERROR) from exc

    try:
        result = fn(tx)
    except SQLWeaveError as exc:
        logger.warning("transaction rolled back: %s", exc)
        rollback_quietly(tx)
        raise
    except Exception as exc:
        logger.exception("transaction callback raised an unexpected error")
        rollback_quietly(tx)
        raise TransactionError(GENERIC_TRANSACTION_ERROR) from exc
    except BaseException:
        logger.warning("transaction interrupted; rolling back")
        rollback_quietly(tx)
        raise

    if hold_commit:
        logger.warning("transaction left open; the caller must commit or roll it back")
        return result

    try:
        tx.commit()
    except Exception as exc:
        logger.error("failed to commit: %s", exc)
        rollback_quietly(tx)
        raise TransactionError(GENERIC_TRANSACTION_ERROR) from exc
    except BaseException:
        rollback_quietly(tx)
        raise
    return result
