"""Prompt template rendering.

Two constructs are supported:

  {{name}}                     — replaced with str(vars[name]); missing or None → ""
  {{#if name}}BODY{{/if}}      — BODY when the caller's condition for `name` is
                                 true, removed otherwise

Conditions are always passed explicitly by the caller; they are never read
from the substitution vars. Section markers are paired with a stack, so nested
sections resolve innermost-first whatever their names.
"""

import re
from collections.abc import Mapping
from typing import Any

_PLACEHOLDER_RE = re.compile(r"\{\{(\w+)\}\}")
_SECTION_RE = re.compile(r"\{\{#if\s+(\w+)\s*\}\}|\{\{/if\s*\}\}")


def format_template(template: str, vars: Mapping[str, Any]) -> str:
    """Replace every `{{key}}` placeholder in one pass."""

    def _sub(match: re.Match) -> str:
        value = vars.get(match.group(1))
        return "" if value is None else str(value)

    return _PLACEHOLDER_RE.sub(_sub, template)


def render_sections(template: str, conditions: Mapping[str, bool]) -> str:
    """Resolve `{{#if name}}...{{/if}}` sections named in `conditions`.

    Sections with other names are kept as written. A stray `{{/if}}` or an
    unclosed `{{#if}}` is left in the output literally.
    """
    parts: list[str] = []
    stack: list[tuple[str, str, list[str]]] = []  # (name, opener, enclosing parts)
    pos = 0
    for match in _SECTION_RE.finditer(template):
        parts.append(template[pos:match.start()])
        pos = match.end()
        name = match.group(1)
        if name is not None:
            stack.append((name, match.group(0), parts))
            parts = []
            continue
        if not stack:
            parts.append(match.group(0))
            continue
        name, opener, outer = stack.pop()
        body = "".join(parts)
        parts = outer
        if name not in conditions:
            parts.append(opener + body + match.group(0))
        elif conditions[name]:
            parts.append(body)
    parts.append(template[pos:])

    while stack:
        _, opener, outer = stack.pop()
        outer.append(opener + "".join(parts))
        parts = outer
    return "".join(parts)


def conditional_section(template: str, section_name: str, condition: bool) -> str:
    """Keep or drop every `{{#if section_name}}` block."""
    return render_sections(template, {section_name: condition})


def render_template(
    template: str,
    vars: Mapping[str, Any],
    conditions: Mapping[str, bool] | None = None,
) -> str:
    """Resolve sections first, then placeholders."""
    if conditions:
        template = render_sections(template, conditions)
    return format_template(template, vars)


def join_names(names: list[str]) -> str:
    """Join names as English prose: "A", "A and B", "A, B, and C"."""
    if not names:
        return ""
    if len(names) == 1:
        return names[0]
    if len(names) == 2:
        return " and ".join(names)
    return ", ".join(names[:-1]) + ", and " + names[-1]
