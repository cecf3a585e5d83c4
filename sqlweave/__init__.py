"""sqlweave: typed SQL statement construction and execution for PostgreSQL."""

from sqlweave import adapters, builder, core, exceptions, service, utils
from sqlweave.__metadata__ import __version__
from sqlweave._sql import SQLFactory, sql
from sqlweave.builder import (
    CaseClauses,
    DeleteBuilder,
    InsertBuilder,
    QueryBuilder,
    RawSQL,
    SelectBuilder,
    UpdateBuilder,
)
from sqlweave.config import ServiceConfig
from sqlweave.core.filters import Condition, Filter, MultiCondition, Operator
from sqlweave.core.metadata import column
from sqlweave.core.pagination import ArrayAggConfig, Pagination, PaginationResult, Sort, format_pagination_result
from sqlweave.exceptions import (
    DatabaseConnectionError,
    IntegrityError,
    NotFoundError,
    SQLBuilderError,
    SQLParsingError,
    SQLWeaveError,
    TransactionError,
)
from sqlweave.protocols import PoolProtocol, QueryResult, TransactionProtocol
from sqlweave.service import RelationalService, ReturningConfig, use_transactions

__all__ = (
    "ArrayAggConfig",
    "CaseClauses",
    "Condition",
    "DatabaseConnectionError",
    "DeleteBuilder",
    "Filter",
    "InsertBuilder",
    "IntegrityError",
    "MultiCondition",
    "NotFoundError",
    "Operator",
    "Pagination",
    "PaginationResult",
    "PoolProtocol",
    "QueryBuilder",
    "QueryResult",
    "RawSQL",
    "RelationalService",
    "ReturningConfig",
    "SQLBuilderError",
    "SQLFactory",
    "SQLParsingError",
    "SQLWeaveError",
    "SelectBuilder",
    "ServiceConfig",
    "Sort",
    "TransactionError",
    "TransactionProtocol",
    "UpdateBuilder",
    "__version__",
    "adapters",
    "builder",
    "column",
    "core",
    "exceptions",
    "format_pagination_result",
    "service",
    "sql",
    "use_transactions",
    "utils",
)
