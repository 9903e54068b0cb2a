"""Tracker definition helpers — defaults, field prompt, examples, rendering.

All functions are pure functions of (definition, include filter, format).
Filtering by presence applies at every nesting level.
"""

from __future__ import annotations

from typing import Any

import yaml

from chat_tracker.formats import get_format
from chat_tracker.models import (
    FieldType,
    IncludeFields,
    OutputFormat,
    TrackerDefinition,
    TrackerField,
    TrackerRecord,
)

_SHAPE_HINTS = {
    FieldType.STRING: "text",
    FieldType.ARRAY: "list",
    FieldType.OBJECT: "object",
    FieldType.FOR_EACH_OBJECT: "object per key",
}


def filter_fields(definition: TrackerDefinition, include_fields: IncludeFields) -> list[TrackerField]:
    include_fields = IncludeFields(include_fields)
    return [f for f in definition if include_fields.includes(f.presence)]


def _as_list(value: Any) -> list:
    if isinstance(value, list):
        return list(value)
    if value is None or value == "":
        return []
    if isinstance(value, str):
        try:
            loaded = yaml.load(value, Loader=yaml.BaseLoader)
        except yaml.YAMLError:
            return [value]
        return loaded if isinstance(loaded, list) else [value]
    return [value]


def _field_value(field: TrackerField, include_fields: IncludeFields, raw: Any) -> Any:
    """Build a field's value from a default or example value."""
    if field.type is FieldType.STRING:
        return "" if raw is None else raw
    if field.type is FieldType.ARRAY:
        return _as_list(raw)
    if field.type is FieldType.OBJECT:
        return _build(field.nested_fields, include_fields, None)
    # FOR_EACH_OBJECT: the raw value names the key
    if raw in (None, ""):
        return {}
    return {str(raw): _build(field.nested_fields, include_fields, None)}


def _build(fields: list[TrackerField], include_fields: IncludeFields, example: int | None) -> TrackerRecord:
    record: TrackerRecord = {}
    for field in filter_fields(fields, include_fields):
        raw = field.default_value
        if example is not None and example < len(field.example_values):
            raw = field.example_values[example]
        if example is not None and field.type is FieldType.OBJECT:
            record[field.name] = _build(field.nested_fields, include_fields, example)
        elif example is not None and field.type is FieldType.FOR_EACH_OBJECT and raw not in (None, ""):
            record[field.name] = {str(raw): _build(field.nested_fields, include_fields, example)}
        else:
            record[field.name] = _field_value(field, include_fields, raw)
    return record


def default_record(definition: TrackerDefinition, include_fields: IncludeFields) -> TrackerRecord:
    """The definition's defaults as a plain dict."""
    return _build(definition, include_fields, None)


def default_tracker(
    definition: TrackerDefinition,
    include_fields: IncludeFields = IncludeFields.DYNAMIC,
    output_format: OutputFormat = OutputFormat.JSON,
) -> Any:
    """Default tracker shaped per format: a dict for JSON, YAML text for YAML."""
    return get_format(output_format).shape(default_record(definition, include_fields))


def _example_count(fields: list[TrackerField], include_fields: IncludeFields) -> int:
    count = 0
    for field in filter_fields(fields, include_fields):
        count = max(count, len(field.example_values), _example_count(field.nested_fields, include_fields))
    return count


def example_trackers(
    definition: TrackerDefinition,
    include_fields: IncludeFields = IncludeFields.DYNAMIC,
    output_format: OutputFormat = OutputFormat.JSON,
) -> list[Any]:
    """Few-shot example trackers, one per example slot in the definition."""
    fmt = get_format(output_format)
    return [
        fmt.shape(_build(definition, include_fields, i))
        for i in range(_example_count(definition, include_fields))
    ]


def tracker_prompt(definition: TrackerDefinition, include_fields: IncludeFields = IncludeFields.DYNAMIC) -> str:
    """Markdown bullet list describing each included field for the model."""
    lines: list[str] = []

    def _walk(fields: list[TrackerField], depth: int) -> None:
        for field in filter_fields(fields, include_fields):
            line = f"{'  ' * depth}- **{field.name}** ({_SHAPE_HINTS[field.type]})"
            if field.prompt:
                line += f": {field.prompt}"
            lines.append(line)
            if field.type in (FieldType.OBJECT, FieldType.FOR_EACH_OBJECT):
                _walk(field.nested_fields, depth + 1)

    _walk(definition, 0)
    return "\n".join(lines)


def _render(
    tracker: TrackerRecord,
    fields: list[TrackerField],
    include_fields: IncludeFields,
    include_history: bool,
) -> TrackerRecord:
    record: TrackerRecord = {}
    included = filter_fields(fields, include_fields)
    for field in included:
        if field.name not in tracker:
            record[field.name] = _field_value(field, include_fields, field.default_value)
            continue
        value = tracker[field.name]
        if field.type is FieldType.OBJECT:
            if not isinstance(value, dict):
                raise TypeError(f"Tracker field {field.name!r} must be an object")
            value = _render(value, field.nested_fields, include_fields, include_history)
        elif field.type is FieldType.FOR_EACH_OBJECT:
            if not isinstance(value, dict):
                raise TypeError(f"Tracker field {field.name!r} must be an object")
            value = {
                key: _render(item, field.nested_fields, include_fields, include_history)
                if isinstance(item, dict) else item
                for key, item in value.items()
            }
        elif field.type is FieldType.ARRAY:
            value = _as_list(value)
        record[field.name] = value

    if include_history:
        declared = {f.name for f in fields}
        for key, value in tracker.items():
            if key not in declared:
                record[key] = value
    return record


def get_tracker(
    tracker: TrackerRecord,
    definition: TrackerDefinition,
    include_fields: IncludeFields = IncludeFields.DYNAMIC,
    include_history: bool = False,
    output_format: OutputFormat = OutputFormat.JSON,
) -> Any:
    """Render a stored tracker through the definition, shaped per format.

    Included fields missing from the stored tracker take their defaults.
    With include_history, keys the definition no longer declares are kept.
    Raises TypeError when a stored object field is not a mapping.
    """
    record = _render(tracker, definition, include_fields, include_history)
    return get_format(output_format).shape(record)


def prune_tracker(
    record: TrackerRecord,
    definition: TrackerDefinition,
    include_fields: IncludeFields = IncludeFields.ALL,
) -> TrackerRecord:
    """Drop keys that are not part of the filtered definition."""
    pruned: TrackerRecord = {}
    for field in filter_fields(definition, include_fields):
        if field.name not in record:
            continue
        value = record[field.name]
        if field.type is FieldType.OBJECT and isinstance(value, dict):
            value = prune_tracker(value, field.nested_fields, include_fields)
        elif field.type is FieldType.FOR_EACH_OBJECT and isinstance(value, dict):
            value = {
                key: prune_tracker(item, field.nested_fields, include_fields)
                if isinstance(item, dict) else item
                for key, item in value.items()
            }
        pruned[field.name] = value
    return pruned


def check_tracker_shape(
    record: TrackerRecord,
    definition: TrackerDefinition,
    include_fields: IncludeFields = IncludeFields.ALL,
) -> None:
    """Raise TypeError when a value does not fit its field's type.

    Object fields need mappings (and mappings per key for FOR_EACH_OBJECT),
    arrays cannot be mappings and text fields cannot be containers.
    """
    for field in filter_fields(definition, include_fields):
        if field.name not in record:
            continue
        value = record[field.name]
        if field.type is FieldType.STRING:
            if isinstance(value, (dict, list)):
                raise TypeError(f"Tracker field {field.name!r} must be text")
        elif field.type is FieldType.ARRAY:
            if isinstance(value, dict):
                raise TypeError(f"Tracker field {field.name!r} must be a list")
        elif not isinstance(value, dict):
            raise TypeError(f"Tracker field {field.name!r} must be an object")
        elif field.type is FieldType.OBJECT:
            check_tracker_shape(value, field.nested_fields, include_fields)
        else:
            for key, item in value.items():
                if not isinstance(item, dict):
                    raise TypeError(f"Tracker field {field.name!r} entry {key!r} must be an object")
                check_tracker_shape(item, field.nested_fields, include_fields)
