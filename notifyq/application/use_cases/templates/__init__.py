"""Use cases for notification templates."""

from .defaults import (
    DEFAULT_EMAIL_TEMPLATES,
    DEFAULT_SMS_TEMPLATES,
    SAMPLE_DATA,
    TRANSACTIONAL_NOTIFICATION_TYPES,
    builtin_template,
)
from .preview import TemplatePreview, preview_template
from .rendering import (
    RenderedContent,
    extract_variables,
    render_template,
    substitute_variables,
    validate_variables,
)
from .resolver import (
    delete_template,
    list_templates,
    resolve_template,
    seed_default_templates,
    upsert_template,
)
from .segments import SegmentInfo, calculate_segments

__all__ = [
    "DEFAULT_EMAIL_TEMPLATES",
    "DEFAULT_SMS_TEMPLATES",
    "SAMPLE_DATA",
    "TRANSACTIONAL_NOTIFICATION_TYPES",
    "RenderedContent",
    "SegmentInfo",
    "TemplatePreview",
    "builtin_template",
    "calculate_segments",
    "delete_template",
    "extract_variables",
    "list_templates",
    "preview_template",
    "render_template",
    "resolve_template",
    "seed_default_templates",
    "substitute_variables",
    "upsert_template",
    "validate_variables",
]
