"""Tracker output formats.

A format decides how a tracker record appears inside prompts and how the
model's `<tracker>` payload is read back. Payloads are read with the YAML
base loader, so every scalar stays the text the model wrote (`12:30` or `no`
are not retyped). JsonFormat tries strict JSON first, since a JSON object
indented with tabs is not valid YAML.

    JsonFormat — structured object; shape() keeps the dict, text is indented JSON
    YamlFormat — flat key/value text; shape() and text are both YAML block text
"""

from __future__ import annotations

import json
from typing import Any

import yaml

from chat_tracker.models import OutputFormat, TrackerRecord


class TrackerParseError(ValueError):
    """Raised when a tracker payload cannot be read as a record."""


def _as_record(data: Any) -> TrackerRecord:
    if not isinstance(data, dict):
        raise TrackerParseError(
            f"Tracker payload must be a mapping, got {type(data).__name__}"
        )
    return data


class TrackerFormat:
    name: OutputFormat

    def shape(self, record: TrackerRecord) -> Any:
        """Return the record in this format's native shape."""
        raise NotImplementedError

    def to_prompt_text(self, record: TrackerRecord) -> str:
        raise NotImplementedError

    def to_wire_text(self, record: TrackerRecord) -> str:
        return self.to_prompt_text(record)

    def from_wire_text(self, text: str) -> TrackerRecord:
        try:
            data = yaml.load(text, Loader=yaml.BaseLoader)
        except yaml.YAMLError as e:
            raise TrackerParseError(f"Tracker payload is not valid {self.name.value}: {e}") from e
        return _as_record(data)


class JsonFormat(TrackerFormat):
    name = OutputFormat.JSON

    def shape(self, record: TrackerRecord) -> TrackerRecord:
        return record

    def to_prompt_text(self, record: TrackerRecord) -> str:
        return json.dumps(record, indent=2, ensure_ascii=False)

    def from_wire_text(self, text: str) -> TrackerRecord:
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            return super().from_wire_text(text)
        return _as_record(data)

class YamlFormat(TrackerFormat):
    name = OutputFormat.YAML

    def shape(self, record: TrackerRecord) -> str:
        return self.to_prompt_text(record)

    def to_prompt_text(self, record: TrackerRecord) -> str:
        if not record:
            return ""
        return yaml.safe_dump(
            record, sort_keys=False, allow_unicode=True, default_flow_style=False
        ).rstrip("\n")


_FORMATS: dict[OutputFormat, TrackerFormat] = {
    OutputFormat.JSON: JsonFormat(),
    OutputFormat.YAML: YamlFormat(),
}


def get_format(output_format: OutputFormat) -> TrackerFormat:
    return _FORMATS[OutputFormat(output_format)]
