"""
Merge engine for enrichment policies.

One generic implementation merges a caller's source object with mapped
provider data, driven by runtime field introspection instead of per-type code.

Supported target shapes:
    - pydantic model classes (fields from ``model_fields``)
    - dataclasses (fields from ``dataclasses.fields``)
    - None, meaning a plain mapping whose fields are the union of the keys of
      the source and provider objects

Presence rules:
    A field is absent when it is missing or None. ``0``, ``False``, ``""`` and
    empty collections count as provided. On pydantic instances a field is only
    present when it was explicitly set, so a model default never counts as
    provided data.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Hashable, Mapping
from typing import Any

from pydantic import BaseModel, ValidationError

from .exceptions import ShapeIntrospectionError
from .models import MergePolicy

logger = logging.getLogger(__name__)

__all__ = ["MergeResult", "apply_policy", "shape_fields"]

# Marker for "no value at all", distinct from an explicit None
_MISSING = object()


@dataclasses.dataclass(frozen=True)
class MergeResult:
    """Merged object plus the number of fields that differ from the source."""

    data: Any
    fields_changed: int


def _is_present(value: Any) -> bool:
    return value is not _MISSING and value is not None


def _is_introspectable(obj: Any) -> bool:
    return isinstance(obj, (Mapping, BaseModel)) or (
        dataclasses.is_dataclass(obj) and not isinstance(obj, type)
    )


def _object_field_names(obj: Any) -> list[Hashable]:
    """List the field names carried by a single object in mapping mode.

    Mapping keys are returned as-is so lookups use the original key.
    """
    if obj is None:
        return []
    if isinstance(obj, Mapping):
        return list(obj.keys())
    if isinstance(obj, BaseModel):
        return list(type(obj).model_fields)
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return [f.name for f in dataclasses.fields(obj)]
    raise ShapeIntrospectionError(
        f"Cannot enumerate fields of {type(obj).__name__}; "
        "expected a mapping, pydantic model or dataclass"
    )


def shape_fields(target_shape: type | None, *objects: Any) -> list[Hashable]:
    """
    Enumerate the fields a merge operates on.

    Args:
        target_shape: Pydantic model class, dataclass, or None for mapping shape
        *objects: Objects whose keys define the fields in mapping mode

    Returns:
        Field names in declaration order (mapping mode: first-seen order)

    Raises:
        ShapeIntrospectionError: If the shape is not introspectable
    """
    if target_shape is None:
        names: dict[Hashable, None] = {}
        for obj in objects:
            for name in _object_field_names(obj):
                names.setdefault(name, None)
        return list(names)

    if isinstance(target_shape, type) and issubclass(target_shape, BaseModel):
        return list(target_shape.model_fields)

    if isinstance(target_shape, type) and dataclasses.is_dataclass(target_shape):
        return [f.name for f in dataclasses.fields(target_shape)]

    raise ShapeIntrospectionError(
        f"Unsupported target shape {target_shape!r}; "
        "expected a pydantic model class, a dataclass or None"
    )


def _read_field(obj: Any, name: Hashable) -> Any:
    """Read a field value, returning _MISSING when the object does not provide it."""
    if obj is None:
        return _MISSING

    if isinstance(obj, Mapping):
        return obj.get(name, _MISSING)

    if isinstance(obj, BaseModel):
        if name not in type(obj).model_fields:
            raise ShapeIntrospectionError(
                f"{type(obj).__name__} has no field '{name}'", field_name=str(name)
            )
        if name not in obj.model_fields_set:
            return _MISSING
        return getattr(obj, name)

    if not isinstance(name, str) or not hasattr(obj, name):
        raise ShapeIntrospectionError(
            f"{type(obj).__name__} has no field '{name}'", field_name=str(name)
        )
    return getattr(obj, name)


def _read_optional(obj: Any, name: Hashable) -> Any:
    """Like _read_field, but an unreadable field is simply absent."""
    try:
        return _read_field(obj, name)
    except ShapeIntrospectionError:
        return _MISSING


def _build(target_shape: type | None, fields: list[Hashable], values: dict[Hashable, Any]) -> Any:
    """Instantiate the target shape from merged values (absent values dropped or None)."""
    if target_shape is None:
        return {name: values[name] if _is_present(values[name]) else None for name in fields}

    if issubclass(target_shape, BaseModel):
        present = {name: v for name, v in values.items() if _is_present(v)}
        try:
            return target_shape.model_validate(present)
        except ValidationError as e:
            first = e.errors()[0]
            field_name = ".".join(str(part) for part in first["loc"]) or None
            raise ShapeIntrospectionError(
                f"Merged value for field '{field_name}' does not fit "
                f"{target_shape.__name__}: {first['msg']}",
                field_name=field_name,
            ) from e

    init_fields = {f.name for f in dataclasses.fields(target_shape) if f.init}
    kwargs = {
        name: (v if _is_present(v) else None)
        for name, v in values.items()
        if name in init_fields
    }
    return target_shape(**kwargs)


def _count_changed(fields: list[Hashable], source: Any, result_values: dict[Hashable, Any]) -> int:
    changed = 0
    for name in fields:
        value = result_values[name]
        if not _is_present(value):
            continue
        source_value = _read_optional(source, name)
        if not _is_present(source_value) or source_value != value:
            changed += 1
    return changed


def _count_against_source(source: Any, payload: Any) -> int:
    """Count the payload's present fields that are new or different from the source."""
    if not _is_introspectable(payload):
        return 0
    fields = _object_field_names(payload)
    values = {name: _read_field(payload, name) for name in fields}
    return _count_changed(fields, source, values)


def apply_policy(
    policy: MergePolicy,
    source: Any,
    provider_data: Any,
    target_shape: type | None = None,
    *,
    count_raw_diff: bool = False,
) -> MergeResult:
    """
    Combine source and provider data under a merge policy.

    Args:
        policy: ENHANCE, MERGE, REPLACE or RAW
        source: Caller-supplied object (may be None)
        provider_data: Mapped provider object, or the raw payload for RAW
        target_shape: Pydantic model class, dataclass, or None for mapping shape
        count_raw_diff: For RAW, count fields differing from the source instead of reporting 0

    Returns:
        MergeResult with the merged object and number of changed/added fields

    Raises:
        ShapeIntrospectionError: If the shape or one of its fields cannot be read
    """
    if policy is MergePolicy.RAW:
        changed = _count_against_source(source, provider_data) if count_raw_diff else 0
        return MergeResult(data=provider_data, fields_changed=changed)

    if policy is MergePolicy.REPLACE:
        if target_shape is not None:
            shape_fields(target_shape)
        if target_shape is None or isinstance(provider_data, target_shape):
            # Provider value is the result; the source only feeds the count
            return MergeResult(
                data=provider_data,
                fields_changed=_count_against_source(source, provider_data),
            )

    fields = shape_fields(target_shape, source, provider_data)
    merged: dict[Hashable, Any] = {}

    for name in fields:
        source_value = _read_field(source, name)
        provider_value = _read_field(provider_data, name)

        match policy:
            case MergePolicy.ENHANCE:
                merged[name] = source_value if _is_present(source_value) else provider_value
            case MergePolicy.MERGE:
                merged[name] = provider_value if _is_present(provider_value) else source_value
            case MergePolicy.REPLACE:
                merged[name] = provider_value

    changed = _count_changed(fields, source, merged)
    logger.debug(f"Applied {policy.value} over {len(fields)} fields, {changed} changed")

    return MergeResult(data=_build(target_shape, fields, merged), fields_changed=changed)
