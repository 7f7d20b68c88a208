"""Preview of template content filled with sample values."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .defaults import SAMPLE_DATA
from .rendering import substitute_variables
from .segments import calculate_segments


@dataclass(frozen=True)
class TemplatePreview:
    content: str
    character_count: int
    segment_count: int
    encoding: str


def preview_template(
    content: str,
    notification_type: str,
    variables: Mapping[str, Any] | None = None,
) -> TemplatePreview:
    """Render ``content`` with the sample values for ``notification_type``.

    ``variables`` take precedence over the samples. Placeholders without a
    value are left in place so the author can spot them.
    """

    values: dict[str, Any] = dict(SAMPLE_DATA.get(notification_type, {}))
    values.update(variables or {})
    rendered = substitute_variables(content, values)
    segments = calculate_segments(rendered)
    return TemplatePreview(
        content=rendered,
        character_count=segments.character_count,
        segment_count=segments.segment_count,
        encoding=segments.encoding,
    )


__all__ = ["TemplatePreview", "preview_template"]
