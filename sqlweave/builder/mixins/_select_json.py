# ruff: noqa: SLF001
"""JSON projection helpers for SELECT builders.

Nested one-to-one and one-to-many relations are projected as
``jsonb_build_object`` / ``jsonb_agg`` expressions keyed by public name, so a
single row carries the whole object graph.
"""

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Optional, Union, cast

import msgspec
from typing_extensions import Self

from sqlweave.core.metadata import is_record_type, json_column_map

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from sqlweave.builder.protocols import BuilderProtocol

__all__ = ("JsonAggregationMixin",)

JsonSource = Union[Mapping[str, str], type, object]


def _key_value_pairs(source: "JsonSource") -> "list[str]":
    if isinstance(source, Mapping):
        mapped = {str(k): str(v) for k, v in source.items()}
    else:
        record_type = source if isinstance(source, type) else type(source)
        mapped = json_column_map(record_type) if is_record_type(record_type) else {}
    return [f"'{key}', {mapped[key]}" for key in sorted(mapped)]


class JsonAggregationMixin:
    """Mixin adding ``jsonb`` projection methods to SELECT builders."""

    def _add_json_column(
        self,
        alias: str,
        source: "JsonSource",
        condition: str,
        as_array: bool,
        order_by: "Sequence[str]",
        *,
        distinct: bool = False,
        coalesce: Optional[str] = None,
    ) -> Self:
        builder = cast("BuilderProtocol", self)
        pairs = _key_value_pairs(source)
        if not pairs:
            return self
        obj = f"jsonb_build_object({', '.join(pairs)})"
        if as_array:
            ordering = f" ORDER BY {order_by[0]}" if order_by else ""
            expression = f"jsonb_agg({'DISTINCT ' if distinct else ''}{obj}{ordering})"
            if condition:
                expression = f"{expression} FILTER (WHERE {condition})"
        else:
            expression = f"CASE WHEN {condition} THEN {obj} ELSE NULL END" if condition else obj
        if coalesce is not None:
            expression = f"COALESCE({expression},{coalesce})"

        state = builder._state
        if state.nested_pairs is not None and not as_array:
            state.nested_pairs.append(f"'{alias}', {expression}")
        else:
            state.columns.append(f'{expression} AS "{alias}"')
        return self

    def select_json_aggregate(
        self, alias: str, source: "JsonSource", condition: str = "", as_array: bool = False, *order_by: str
    ) -> Self:
        """Project columns as one JSON object (or an array of objects).

        Args:
            alias: Output column name.
            source: Mapping of public key to column expression, or a record
                type (or instance) whose fields declare both tags.
            condition: Optional predicate. Arrays get ``FILTER (WHERE ...)``;
                single objects become ``NULL`` when it is false.
            as_array: Aggregate matching rows with ``jsonb_agg``.
            *order_by: Ordering inside the aggregate; only the first is used.

        Returns:
            The current builder instance for method chaining.
        """
        return self._add_json_column(alias, source, condition, as_array, order_by)

    def select_json_aggregate_coalesce(
        self,
        alias: str,
        source: "JsonSource",
        condition: str = "",
        as_array: bool = False,
        coalesce: str = "'[]'",
        *order_by: str,
    ) -> Self:
        """Like :meth:`select_json_aggregate`, wrapped in ``COALESCE(expr, coalesce)``."""
        return self._add_json_column(alias, source, condition, as_array, order_by, coalesce=coalesce)

    def select_json_aggregate_distinct(
        self, alias: str, source: "JsonSource", condition: str = "", as_array: bool = False, *order_by: str
    ) -> Self:
        """Like :meth:`select_json_aggregate` with ``jsonb_agg(DISTINCT ...)`` for arrays."""
        return self._add_json_column(alias, source, condition, as_array, order_by, distinct=True)

    def select_json_aggregate_func(self, alias: str, fn: "Callable[[Self], Any]") -> Self:
        """Group the single-object aggregates added by ``fn`` under one object.

        Inside ``fn``, non-array calls to the ``select_json_aggregate*``
        methods contribute ``'alias', expr`` pairs instead of columns; the
        pairs become ``jsonb_build_object(...) AS "alias"``. Array aggregates
        are still added as columns.

        Args:
            alias: Output column name; ``json_result`` when empty.
            fn: Callback receiving this builder.

        Returns:
            The current builder instance for method chaining.
        """
        builder = cast("BuilderProtocol", self)
        state = builder._state
        state.nested_pairs = []
        try:
            fn(self)
            pairs = state.nested_pairs
        finally:
            state.nested_pairs = None
        state.columns.append(f'jsonb_build_object({", ".join(pairs)}) AS "{alias or "json_result"}"')
        return self

    def select_json_array_elements(self, elements: "Sequence[Mapping[str, Any]]", alias: str = "") -> Self:
        """Expand in-memory objects into rows with ``jsonb_array_elements($n::jsonb)``.

        The objects are encoded to JSON and bound as a single argument.

        Returns:
            The current builder instance for method chaining.
        """
        builder = cast("BuilderProtocol", self)
        state = builder._state
        try:
            payload = msgspec.json.encode(list(elements)).decode()
        except (msgspec.EncodeError, TypeError) as exc:
            builder._record_error(f"could not encode JSON array elements: {exc}")
            return self
        state.args.append(payload)
        state.columns.append(f'jsonb_array_elements(${len(state.args)}::jsonb) AS "{alias or "array_elements"}"')
        return self
