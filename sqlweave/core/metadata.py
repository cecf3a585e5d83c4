"""Record metadata extraction.

Records are dataclasses whose fields carry mapping hints in
``dataclasses.field(metadata=...)``, normally written with :func:`column`:

.. code-block:: python

    @dataclass
    class Order:
        id: int = 0
        customer_name: str = column("c.name", default="")
        total: Decimal = column(special="generated", default=Decimal(0))
        lines: list[OrderLine] = column(json="items", default_factory=list)

Each record type is reflected once into a tuple of :class:`FieldMeta`; the
default SELECT projection and the INSERT template are derived from it and
cached alongside.
"""

import dataclasses
import datetime
import types
import typing
from collections.abc import Sequence as AbcSequence
from dataclasses import dataclass
from typing import Any, Final, Optional, Union

from sqlweave.core.cache import CacheKey, get_cache, type_identity
from sqlweave.core.parameters import quote_column
from sqlweave.utils.logging import get_logger
from sqlweave.utils.text import camelize, snake_case

__all__ = (
    "COLUMN_KEY",
    "JSON_KEY",
    "PLACEHOLDER_SLOT",
    "SPECIAL_KEY",
    "TRANSFORM_KEY",
    "FieldMeta",
    "InsertTemplate",
    "column",
    "default_columns",
    "extract_fields",
    "get_insert_template",
    "is_record_type",
    "json_column_map",
)

logger = get_logger("core.metadata")

JSON_KEY: Final = "json"
COLUMN_KEY: Final = "column"
SPECIAL_KEY: Final = "special"
TRANSFORM_KEY: Final = "transform"

EXCLUDED_TAGS: Final = frozenset({"", "-"})
IDENTIFIER_JSON_TAGS: Final = frozenset({"id", "_id"})
TIMESTAMP_COLUMNS: Final = ("updated_at", "created_at")
PLACEHOLDER_SLOT: Final = "$X"
TEMPORAL_TYPES: Final = (datetime.datetime, datetime.date, datetime.time)

_fields_cache = get_cache("field_meta")
_columns_cache = get_cache("default_columns")
_insert_cache = get_cache("insert_template")


def column(
    name: Optional[str] = None,
    *,
    json: Optional[str] = None,
    special: Optional[str] = None,
    transform: Optional[str] = None,
    **field_kwargs: Any,
) -> Any:
    """Declare a record field with storage hints.

    Args:
        name: Storage column. May be ``"table.column"``, any SQL expression, or
            ``"-"`` for fields that are projected by hand.
        json: Public name. Defaults to the camelCase field name; ``"-"`` hides
            the field from projections and inserts.
        special: Free-form markers; ``"generated"`` excludes the field from
            INSERT and UPDATE.
        transform: SQL type used for explicit casts in bulk row updates.
        **field_kwargs: Passed through to :func:`dataclasses.field`.

    Returns:
        A dataclass field.
    """
    metadata = dict(field_kwargs.pop("metadata", None) or {})
    for key, value in ((COLUMN_KEY, name), (JSON_KEY, json), (SPECIAL_KEY, special), (TRANSFORM_KEY, transform)):
        if value is not None:
            metadata[key] = value
    return dataclasses.field(metadata=metadata, **field_kwargs)


@dataclass(frozen=True)
class FieldMeta:
    """Reflected description of one record field."""

    name: str
    type: Any
    json_tag: str
    column_tag: str
    transform: str
    field_index: int
    nested_fields: "tuple[FieldMeta, ...]" = ()
    is_list: bool = False
    is_record: bool = False
    is_temporal: bool = False
    is_generated: bool = False

    @property
    def storage_column(self) -> str:
        """Bare column written by INSERT/UPDATE (table prefix removed)."""
        if not self.column_tag:
            return snake_case(self.json_tag)
        if "." in self.column_tag:
            return self.column_tag.split(".", 1)[1]
        return self.column_tag

    @property
    def is_identifier(self) -> bool:
        return self.json_tag in IDENTIFIER_JSON_TAGS or self.column_tag == "id"

    @property
    def is_hidden(self) -> bool:
        """Neither a public name nor a storage column."""
        return self.json_tag in EXCLUDED_TAGS and self.column_tag in EXCLUDED_TAGS


@dataclass(frozen=True)
class InsertTemplate:
    """Column and placeholder plan for inserting one record type.

    ``columns`` always starts with ``id`` and ends with ``updated_at`` and
    ``created_at``. ``field_names`` holds the attribute feeding each column,
    or ``None`` for the server-populated timestamps (and for ``id`` when the
    record has no identifier field).

    ``single_row_placeholder`` is the ready ``($1,...,NOW(),NOW())`` tuple of
    a lone row; ``base_placeholders`` marks each bound slot with
    :data:`PLACEHOLDER_SLOT` for numbering rows of a bulk insert.
    """

    columns: "tuple[str, ...]"
    field_names: "tuple[Optional[str], ...]"
    use_generated_id: "tuple[bool, ...]"
    use_server_now: "tuple[bool, ...]"
    base_placeholders: "tuple[str, ...]"
    single_row_placeholder: str

    @property
    def quoted_columns(self) -> "tuple[str, ...]":
        return tuple(
            name if (is_id or is_now) else f'"{name}"'
            for name, is_id, is_now in zip(self.columns, self.use_generated_id, self.use_server_now)
        )

    @property
    def value_columns(self) -> "tuple[tuple[str, Optional[str]], ...]":
        """``(column, field_name)`` pairs bound to placeholders, identifier first."""
        return tuple(
            (name, field_name)
            for name, field_name, is_now in zip(self.columns, self.field_names, self.use_server_now)
            if not is_now
        )


def is_record_type(value: Any) -> bool:
    return isinstance(value, type) and dataclasses.is_dataclass(value)


def _normalize_annotation(annotation: Any) -> "tuple[Any, bool]":
    """Strip ``Optional`` and sequence wrappers, reporting whether a sequence was seen."""
    is_list = False
    while True:
        origin = typing.get_origin(annotation)
        if origin is Union or (hasattr(types, "UnionType") and origin is getattr(types, "UnionType")):
            members = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
            if len(members) != 1:
                return annotation, is_list
            annotation = members[0]
            continue
        if origin in (list, tuple, set, frozenset) or (
            isinstance(origin, type) and origin is not str and issubclass(origin, AbcSequence)
        ):
            args = [arg for arg in typing.get_args(annotation) if arg is not Ellipsis]
            is_list = True
            annotation = args[0] if args else Any
            continue
        return annotation, is_list


def _resolve_hints(record_type: type) -> "dict[str, Any]":
    try:
        return typing.get_type_hints(record_type)
    except (NameError, TypeError):
        logger.debug("Could not resolve annotations of %s, using raw field types", type_identity(record_type))
        return {f.name: f.type for f in dataclasses.fields(record_type)}


def _reflect(record_type: type, seen: "tuple[type, ...]") -> "tuple[FieldMeta, ...]":
    hints = _resolve_hints(record_type)
    fields: list[FieldMeta] = []
    for index, field in enumerate(dataclasses.fields(record_type)):
        if field.name.startswith("_"):
            continue
        field_type, is_list = _normalize_annotation(hints.get(field.name, field.type))
        json_tag = field.metadata.get(JSON_KEY)
        is_temporal = isinstance(field_type, type) and issubclass(field_type, TEMPORAL_TYPES)
        is_record = is_record_type(field_type) and not is_temporal
        nested: tuple[FieldMeta, ...] = ()
        if is_record and field_type not in seen:
            nested = _reflect(field_type, (*seen, field_type))
        fields.append(
            FieldMeta(
                name=field.name,
                type=field_type,
                json_tag=camelize(field.name) if json_tag is None else str(json_tag),
                column_tag=str(field.metadata.get(COLUMN_KEY, "")),
                transform=str(field.metadata.get(TRANSFORM_KEY, "")),
                field_index=index,
                nested_fields=nested,
                is_list=is_list,
                is_record=is_record,
                is_temporal=is_temporal,
                is_generated="generated" in str(field.metadata.get(SPECIAL_KEY, "")),
            )
        )
    return tuple(fields)


def extract_fields(record_type: type) -> "tuple[FieldMeta, ...]":
    """Return the reflected fields of a record type.

    Nested records and lists of records are reflected recursively; dates and
    times are scalars. Private fields are skipped. Malformed hints never
    raise; missing names fall back to the case-converted field name.

    Args:
        record_type: A dataclass type.

    Returns:
        Field metadata in declaration order.
    """
    if not is_record_type(record_type):
        return ()
    key = CacheKey((type_identity(record_type), record_type))
    return _fields_cache.get_or_build(key, lambda: _reflect(record_type, (record_type,)))


def _nested_projection(parent: FieldMeta) -> str:
    pairs = [
        f"'{nested.json_tag}', {quote_column(nested.column_tag)}"
        for nested in parent.nested_fields
        if nested.json_tag not in EXCLUDED_TAGS and nested.column_tag
    ]
    if not pairs:
        return ""
    body = f"jsonb_build_object({', '.join(pairs)})"
    return f"jsonb_agg({body})" if parent.is_list else body


def _build_columns(record_type: type) -> "tuple[str, ...]":
    columns: list[str] = []
    for meta in extract_fields(record_type):
        if meta.json_tag in EXCLUDED_TAGS:
            continue
        if meta.nested_fields:
            expression = _nested_projection(meta)
            if expression:
                columns.append(f'{expression} as "{meta.json_tag}"')
        elif not meta.column_tag:
            snake = snake_case(meta.json_tag)
            columns.append(meta.json_tag if snake == meta.json_tag else f'"{snake}" as "{meta.json_tag}"')
        elif meta.column_tag != "-":
            columns.append(f'{meta.column_tag} as "{meta.json_tag}"')
    return tuple(columns)


def default_columns(record_type: type) -> "tuple[str, ...]":
    """Default SELECT projection of a record type, aliased by public name."""
    key = CacheKey((type_identity(record_type), record_type))
    return _columns_cache.get_or_build(key, lambda: _build_columns(record_type))


def json_column_map(record_type: type) -> "dict[str, str]":
    """Map public names to storage columns for fields that declare both."""
    return {
        meta.json_tag: meta.column_tag
        for meta in extract_fields(record_type)
        if meta.json_tag not in EXCLUDED_TAGS and meta.column_tag not in EXCLUDED_TAGS
    }


def _build_insert_template(record_type: type) -> InsertTemplate:
    metas = extract_fields(record_type)
    identifier = next((meta.name for meta in metas if meta.is_identifier), None)
    columns: list[str] = ["id"]
    field_names: list[Optional[str]] = [identifier]
    for meta in metas:
        if meta.is_generated or meta.is_identifier or meta.is_hidden or meta.column_tag == "-":
            continue
        if meta.is_record:
            continue
        storage = meta.storage_column
        if storage in TIMESTAMP_COLUMNS:
            continue
        columns.append(storage)
        field_names.append(meta.name)
    writable = len(columns)
    columns.extend(TIMESTAMP_COLUMNS)
    field_names.extend((None, None))
    base = tuple([PLACEHOLDER_SLOT] * writable + ["NOW()", "NOW()"])
    numbered = [f"${index}" for index in range(1, writable + 1)]
    return InsertTemplate(
        columns=tuple(columns),
        field_names=tuple(field_names),
        use_generated_id=(True,) + (False,) * (len(columns) - 1),
        use_server_now=(False,) * writable + (True, True),
        base_placeholders=base,
        single_row_placeholder=f"({','.join([*numbered, 'NOW()', 'NOW()'])})",
    )


def get_insert_template(record_type: type) -> InsertTemplate:
    """Return the cached insert plan for a record type."""
    key = CacheKey((type_identity(record_type), record_type))
    return _insert_cache.get_or_build(key, lambda: _build_insert_template(record_type))
