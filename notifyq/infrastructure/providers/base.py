"""Contract shared by outbound delivery providers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class ProviderReceipt:
    """Acknowledgement returned by a provider that accepted a message."""

    provider: str
    provider_message_id: str | None
    raw: dict[str, Any] = field(default_factory=dict)


class DeliveryProvider(Protocol):
    """Send one rendered message to one recipient.

    Implementations raise ``TransientProviderError`` for failures worth
    retrying and ``PermanentProviderError`` for everything else.
    """

    name: str

    def send(
        self, recipient: str, content: str, *, subject: str | None = None
    ) -> ProviderReceipt: ...


__all__ = ["DeliveryProvider", "ProviderReceipt"]
