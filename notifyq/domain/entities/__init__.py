"""Domain entities exposed by the application."""

from .message import (
    ACTIVE_STATUSES,
    CHANNEL_EMAIL,
    CHANNEL_SMS,
    CHANNELS,
    CLAIMABLE_STATUSES,
    MESSAGE_STATUS_DELIVERED,
    MESSAGE_STATUS_FAILED,
    MESSAGE_STATUS_PENDING,
    MESSAGE_STATUS_PROCESSING,
    MESSAGE_STATUS_SCHEDULED,
    MESSAGE_STATUS_SENT,
    MESSAGE_STATUS_SKIPPED,
    MESSAGE_STATUSES,
    RECIPIENT_TYPES,
    SKIP_REASON_CANCELLED,
    SKIP_REASON_CHANNEL_DISABLED,
    SKIP_REASON_OPTED_OUT,
    TERMINAL_STATUSES,
    Message,
    Recipient,
)
from .opt_out import (
    OPT_OUT_METHOD_ADMIN,
    OPT_OUT_METHOD_PROVIDER,
    OPT_OUT_METHOD_STOP_KEYWORD,
    OptOut,
)
from .template import NotificationTemplate, ResolvedTemplate
from .tenant_settings import (
    ChannelSettings,
    QuietHoursPolicy,
    RateLimitPolicy,
    TenantSettings,
)

__all__ = [
    "Message",
    "Recipient",
    "MESSAGE_STATUS_PENDING",
    "MESSAGE_STATUS_SCHEDULED",
    "MESSAGE_STATUS_PROCESSING",
    "MESSAGE_STATUS_SENT",
    "MESSAGE_STATUS_DELIVERED",
    "MESSAGE_STATUS_FAILED",
    "MESSAGE_STATUS_SKIPPED",
    "MESSAGE_STATUSES",
    "CLAIMABLE_STATUSES",
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "CHANNEL_SMS",
    "CHANNEL_EMAIL",
    "CHANNELS",
    "RECIPIENT_TYPES",
    "SKIP_REASON_OPTED_OUT",
    "SKIP_REASON_CHANNEL_DISABLED",
    "SKIP_REASON_CANCELLED",
    "OptOut",
    "OPT_OUT_METHOD_STOP_KEYWORD",
    "OPT_OUT_METHOD_ADMIN",
    "OPT_OUT_METHOD_PROVIDER",
    "NotificationTemplate",
    "ResolvedTemplate",
    "ChannelSettings",
    "QuietHoursPolicy",
    "RateLimitPolicy",
    "TenantSettings",
]
