"""Placeholder substitution for ``{{variable}}`` templates."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from notifyq.domain.entities import NotificationTemplate
from notifyq.domain.errors import ValidationError

from .segments import SegmentInfo, calculate_segments

VARIABLE_PATTERN = re.compile(r"\{\{(\w+)\}\}")


@dataclass(frozen=True)
class RenderedContent:
    subject: str | None
    content: str
    segments: SegmentInfo


def substitute_variables(content: str, variables: Mapping[str, Any] | None) -> str:
    """Replace placeholders with values, leaving unknown ones untouched."""

    values = variables or {}

    def _replace(match: re.Match[str]) -> str:
        value = values.get(match.group(1))
        if value is None:
            return match.group(0)
        return str(value)

    return VARIABLE_PATTERN.sub(_replace, content)


def extract_variables(content: str | None) -> list[str]:
    """Return placeholder names in order of first appearance."""

    names: list[str] = []
    for name in VARIABLE_PATTERN.findall(content or ""):
        if name not in names:
            names.append(name)
    return names


def validate_variables(content: str | None, variables: Mapping[str, Any] | None) -> list[str]:
    """Return the placeholders of ``content`` with no value in ``variables``."""

    values = variables or {}
    return [name for name in extract_variables(content) if values.get(name) is None]


def render_template(
    template: NotificationTemplate, variables: Mapping[str, Any] | None
) -> RenderedContent:
    missing = validate_variables(template.content, variables)
    missing += [
        name
        for name in validate_variables(template.subject, variables)
        if name not in missing
    ]
    if missing:
        raise ValidationError(
            f"Missing template variables for {template.notification_type}: "
            + ", ".join(missing)
        )

    content = substitute_variables(template.content, variables)
    subject = (
        substitute_variables(template.subject, variables)
        if template.subject is not None
        else None
    )
    return RenderedContent(
        subject=subject, content=content, segments=calculate_segments(content)
    )


__all__ = [
    "VARIABLE_PATTERN",
    "RenderedContent",
    "extract_variables",
    "render_template",
    "substitute_variables",
    "validate_variables",
]
