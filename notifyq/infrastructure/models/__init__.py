"""ORM models used by the application infrastructure."""

from .delivery_report import DeliveryReportModel
from .message import MessageModel
from .opt_out import OptOutModel
from .rate_limit import RateLimitCounterModel
from .settings import ChannelSettingsModel, TenantSettingsModel
from .template import NotificationTemplateModel

__all__ = [
    "DeliveryReportModel",
    "MessageModel",
    "OptOutModel",
    "RateLimitCounterModel",
    "ChannelSettingsModel",
    "TenantSettingsModel",
    "NotificationTemplateModel",
]
