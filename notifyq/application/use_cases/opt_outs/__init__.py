"""Use cases for recipient suppression."""

from .normalize import (
    infer_channel,
    normalize_email,
    normalize_phone,
    normalize_recipient,
)
from .registry import (
    STOP_KEYWORDS,
    is_opted_out,
    is_stop_keyword,
    list_opt_outs,
    on_stop_keyword,
    record_opt_out,
)

__all__ = [
    "STOP_KEYWORDS",
    "infer_channel",
    "is_opted_out",
    "is_stop_keyword",
    "list_opt_outs",
    "normalize_email",
    "normalize_phone",
    "normalize_recipient",
    "on_stop_keyword",
    "record_opt_out",
]
