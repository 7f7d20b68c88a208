"""Domain entity representing a recipient who withdrew consent."""

from dataclasses import dataclass
from datetime import datetime

OPT_OUT_METHOD_STOP_KEYWORD = "stop_keyword"
OPT_OUT_METHOD_ADMIN = "admin"
OPT_OUT_METHOD_PROVIDER = "provider"


@dataclass
class OptOut:
    """Permanent suppression of a recipient for one tenant."""

    id: int | None
    tenant_id: str
    recipient: str
    method: str
    raw_message: str | None
    created_at: datetime | None


__all__ = [
    "OptOut",
    "OPT_OUT_METHOD_STOP_KEYWORD",
    "OPT_OUT_METHOD_ADMIN",
    "OPT_OUT_METHOD_PROVIDER",
]
