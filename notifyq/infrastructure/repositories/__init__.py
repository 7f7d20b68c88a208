"""Repositories translating between ORM models and domain entities."""

from .delivery_report_repository import DeliveryReportRepository, PendingDeliveryReport
from .message_repository import MessageRepository
from .opt_out_repository import OptOutRepository
from .rate_limit_repository import RateLimitRepository
from .settings_repository import SettingsRepository
from .template_repository import TemplateRepository

__all__ = [
    "DeliveryReportRepository",
    "MessageRepository",
    "OptOutRepository",
    "PendingDeliveryReport",
    "RateLimitRepository",
    "SettingsRepository",
    "TemplateRepository",
]
