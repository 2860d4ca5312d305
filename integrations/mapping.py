"""
Field Mapping

Applies a tenant's field-mapping rules to a normalized record. Unmapped
fields pass through unchanged; mapped targets are overwritten with the
transformed source value.
"""

import logging
from collections.abc import Callable, Mapping
from datetime import date, datetime
from typing import Any

from integrations.base import EntityType, FieldMapping, FieldTransformation
from integrations.exceptions import FieldMappingError

logger = logging.getLogger(__name__)

_MISSING = object()


def _to_date(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()[:10]
    if isinstance(value, str):
        return value.split("T")[0]
    return value


def _split_lines(value: Any) -> Any:
    if isinstance(value, str):
        return [line.strip() for line in value.split("\n") if line.strip()]
    return value


def _join_lines(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return "\n".join(str(v) for v in value)
    return value


CUSTOM_TRANSFORMS: dict[str, Callable[[Any], Any]] = {
    "lower": lambda v: v.lower() if isinstance(v, str) else v,
    "upper": lambda v: v.upper() if isinstance(v, str) else v,
    "strip": lambda v: v.strip() if isinstance(v, str) else v,
    "date": _to_date,
    "split_lines": _split_lines,
    "join_lines": _join_lines,
    "string": lambda v: "" if v is None else str(v),
}


def register_transform(name: str, fn: Callable[[Any], Any]) -> None:
    """Register a named transform usable from ``custom`` mapping rules."""
    CUSTOM_TRANSFORMS[name] = fn


def get_nested_value(record: Mapping[str, Any], path: str) -> Any:
    """Resolve a dotted path; returns the missing sentinel when any hop is absent."""
    current: Any = record
    for key in path.split("."):
        if isinstance(current, Mapping) and key in current:
            current = current[key]
        else:
            return _MISSING
    return current


def format_value(value: Any, fmt: str | None) -> Any:
    if not fmt:
        return value
    if "YYYY-MM-DD" in fmt:
        return _to_date(value)
    if "{" in fmt:
        return fmt.format(value)
    return value


def apply_transformation(value: Any, transformation: FieldTransformation | None) -> Any:
    if transformation is None or transformation.type == "direct":
        return value

    if transformation.type == "format":
        return format_value(value, transformation.format)
    if transformation.type == "lookup":
        return transformation.lookup_table.get(str(value), value)
    if transformation.type == "custom":
        fn = CUSTOM_TRANSFORMS.get(transformation.custom_function or "")
        if fn is None:
            logger.warning(f"Unknown custom transform: {transformation.custom_function}")
            return value
        return fn(value)

    logger.warning(f"Unknown transformation type: {transformation.type}")
    return value


def mappings_for(mappings: list[FieldMapping], entity: EntityType) -> list[FieldMapping]:
    return [m for m in mappings if m.entity == entity]


def apply_field_mappings(
    record: Mapping[str, Any],
    mappings: list[FieldMapping],
) -> dict[str, Any]:
    """
    Apply mapping rules to a record.

    Args:
        record: Normalized record as a plain dict
        mappings: Tenant rules, applied in order

    Returns:
        New dict; the input is never mutated

    Raises:
        FieldMappingError: A required source field is missing
    """
    result = dict(record)
    for mapping in mappings:
        value = get_nested_value(record, mapping.source_field)
        if value is _MISSING or value is None:
            if mapping.is_required:
                raise FieldMappingError(
                    mapping.source_field,
                    f"Required field missing: {mapping.source_field}",
                )
            continue
        result[mapping.target_field] = apply_transformation(value, mapping.transformation)
    return result
