"""SQL statement builder mixins."""

from sqlweave.builder.mixins._common_table_expr import CommonTableExpressionMixin
from sqlweave.builder.mixins._join import JoinClauseMixin
from sqlweave.builder.mixins._returning import ReturningClauseMixin
from sqlweave.builder.mixins._select_json import JsonAggregationMixin
from sqlweave.builder.mixins._union import UnionAllMixin
from sqlweave.builder.mixins._where import HavingClauseMixin, WhereClauseMixin

__all__ = (
    "CommonTableExpressionMixin",
    "HavingClauseMixin",
    "JoinClauseMixin",
    "JsonAggregationMixin",
    "ReturningClauseMixin",
    "UnionAllMixin",
    "WhereClauseMixin",
)
