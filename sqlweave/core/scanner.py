"""Scan result rows into records.

Result columns are resolved to record fields once per ``(record type,
column signature)`` and the resolution is cached. Columns that resolve to no
field, and values that cannot be coerced into the field's annotation, are
skipped: servers routinely return computed extras that no record declares.
"""

import dataclasses
import typing
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, Optional

import msgspec
from typing_extensions import TypeVar

from sqlweave.core.cache import CacheKey, get_cache, type_identity
from sqlweave.core.metadata import EXCLUDED_TAGS, FieldMeta, extract_fields, is_record_type
from sqlweave.utils.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable

__all__ = ("get_field_map", "scan_mapping", "scan_row", "scan_rows")

T = TypeVar("T")

logger = get_logger("core.scanner")

_field_map_cache = get_cache("scanner_field_map")


def _build_field_map(record_type: type, columns: "tuple[str, ...]") -> "tuple[Optional[str], ...]":
    metas = extract_fields(record_type)
    lookups: list[dict[str, str]] = [{}, {}, {}]
    for meta in metas:
        if meta.column_tag not in EXCLUDED_TAGS:
            lookups[0].setdefault(meta.column_tag.lower(), meta.name)
            if "." in meta.column_tag:
                lookups[0].setdefault(meta.column_tag.split(".", 1)[1].lower(), meta.name)
        if meta.json_tag not in EXCLUDED_TAGS:
            lookups[1].setdefault(meta.json_tag.lower(), meta.name)
        lookups[2].setdefault(meta.name.lower(), meta.name)
    resolved: list[Optional[str]] = []
    for column in columns:
        key = column.lower()
        resolved.append(next((lookup[key] for lookup in lookups if key in lookup), None))
    return tuple(resolved)


def get_field_map(record_type: type, columns: "Sequence[str]") -> "tuple[Optional[str], ...]":
    """Resolve result columns to field names.

    Matching is case-insensitive and tries, in order, the column tag (with and
    without its ``table.`` prefix), the JSON tag, then the field name.

    Args:
        record_type: Destination record type.
        columns: Result column names.

    Returns:
        One field name per column, ``None`` for unresolved columns.
    """
    signature = tuple(columns)
    key = CacheKey((type_identity(record_type), record_type, ",".join(signature)))
    return _field_map_cache.get_or_build(key, lambda: _build_field_map(record_type, signature))


def _convert(meta: FieldMeta, value: Any, annotation: Any) -> Any:
    if value is None:
        return None
    if isinstance(annotation, str):
        return value
    if meta.is_record and meta.nested_fields:
        if meta.is_list and isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
            return [scan_mapping(meta.type, item) if isinstance(item, Mapping) else item for item in value]
        if isinstance(value, Mapping):
            return scan_mapping(meta.type, value)
    return msgspec.convert(value, annotation, strict=False)


def _instantiate(record_type: "type[T]", values: "dict[str, Any]") -> T:
    fields_by_name = {f.name: f for f in dataclasses.fields(record_type)}  # type: ignore[arg-type]
    kwargs: dict[str, Any] = {}
    deferred: dict[str, Any] = {}
    for name, value in values.items():
        target = fields_by_name.get(name)
        if target is None:
            continue
        if target.init:
            kwargs[name] = value
        else:
            deferred[name] = value
    for name, target in fields_by_name.items():
        if not target.init or name in kwargs:
            continue
        if target.default is dataclasses.MISSING and target.default_factory is dataclasses.MISSING:
            kwargs[name] = None
    instance = record_type(**kwargs)
    for name, value in deferred.items():
        object.__setattr__(instance, name, value)
    return instance


def _assign(record_type: type, pairs: "Iterable[tuple[Optional[str], Any]]") -> "dict[str, Any]":
    metas = {meta.name: meta for meta in extract_fields(record_type)}
    annotations = {f.name: f.type for f in dataclasses.fields(record_type)}
    hints = _resolved_hints(record_type, annotations)
    values: dict[str, Any] = {}
    for name, value in pairs:
        if name is None or name not in metas:
            continue
        try:
            values[name] = _convert(metas[name], value, hints.get(name, Any))
        except (msgspec.ValidationError, TypeError, ValueError) as exc:
            logger.debug("Skipping %s.%s: %s", type_identity(record_type), name, exc)
    return values


def _resolved_hints(record_type: type, fallback: "dict[str, Any]") -> "dict[str, Any]":
    try:
        return typing.get_type_hints(record_type)
    except (NameError, TypeError):
        return fallback


def scan_row(record_type: "type[T]", columns: "Sequence[str]", row: "Sequence[Any]") -> T:
    """Build one record from a result row.

    Args:
        record_type: Destination record type.
        columns: Result column names.
        row: Values in column order.

    Returns:
        The record. Fields without a matching column keep their default, or
        ``None`` when they have none.
    """
    field_map = get_field_map(record_type, columns)
    return _instantiate(record_type, _assign(record_type, zip(field_map, row)))


def scan_rows(record_type: "type[T]", columns: "Sequence[str]", rows: "Iterable[Sequence[Any]]") -> "list[T]":
    return [scan_row(record_type, columns, row) for row in rows]


def scan_mapping(record_type: "type[T]", data: "Mapping[str, Any]") -> T:
    """Build one record from a mapping keyed by column, JSON tag or field name."""
    if not is_record_type(record_type):
        return msgspec.convert(data, record_type, strict=False)
    keys = [str(key) for key in data]
    field_map = get_field_map(record_type, keys)
    return _instantiate(record_type, _assign(record_type, zip(field_map, data.values())))
