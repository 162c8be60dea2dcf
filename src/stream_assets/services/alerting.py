"""Alerting for failed conversions via a Discord webhook."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

import httpx

from stream_assets.config import settings
from stream_assets.logging import get_logger

logger = get_logger(__name__)


class AlertSeverity(StrEnum):
    """Alert severity levels."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@dataclass
class Alert:
    """An alert to be posted to the configured webhook."""

    title: str
    message: str
    severity: AlertSeverity = AlertSeverity.ERROR
    context: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


class AlertingService:
    """Posts alerts as Discord embeds. A missing webhook disables alerting."""

    DISCORD_COLORS = {
        AlertSeverity.INFO: 0x3498DB,  # Blue
        AlertSeverity.WARNING: 0xF39C12,  # Orange
        AlertSeverity.ERROR: 0xE74C3C,  # Red
        AlertSeverity.CRITICAL: 0x9B59B6,  # Purple
    }

    def __init__(self, webhook_url: str | None = None) -> None:
        self.discord_webhook_url = webhook_url or settings.alert_discord_webhook_url

    async def send_alert(self, alert: Alert) -> bool:
        """Send an alert.

        Returns:
            True if the webhook accepted it. Failures are logged, never raised.
        """
        if not self.discord_webhook_url:
            return False

        try:
            return await self._send_discord(alert)
        except Exception as e:
            logger.error("discord_alert_failed", error=str(e))
            return False

    async def _send_discord(self, alert: Alert) -> bool:
        fields = []
        for key, value in alert.context.items():
            str_value = str(value)
            if len(str_value) > 200:
                str_value = str_value[:197] + "..."
            fields.append(
                {
                    "name": key.replace("_", " ").title(),
                    "value": str_value,
                    "inline": True,
                }
            )

        payload = {
            "embeds": [
                {
                    "title": f"[{alert.severity.value.upper()}] {alert.title}",
                    "description": alert.message,
                    "color": self.DISCORD_COLORS.get(alert.severity, 0xE74C3C),
                    "fields": fields[:25],  # Discord limit
                    "timestamp": alert.timestamp.isoformat(),
                    "footer": {"text": "Stream Assets"},
                }
            ]
        }

        async with httpx.AsyncClient() as client:
            response = await client.post(self.discord_webhook_url, json=payload, timeout=10.0)
            response.raise_for_status()

        logger.info("discord_alert_sent", severity=alert.severity.value, title=alert.title)
        return True


_alerting_service: AlertingService | None = None


def get_alerting_service() -> AlertingService:
    """Get the alerting service singleton."""
    global _alerting_service
    if _alerting_service is None:
        _alerting_service = AlertingService()
    return _alerting_service


async def alert_conversion_failure(
    account_id: int,
    asset_id: int,
    quality: str,
    error_kind: str,
    error_message: str,
    service: AlertingService | None = None,
) -> None:
    """Send an alert for a failed conversion."""
    if not settings.alert_on_conversion_failure:
        return

    alert = Alert(
        title=f"Conversion failed ({quality})",
        message=error_message,
        severity=AlertSeverity.ERROR,
        context={
            "account_id": account_id,
            "asset_id": asset_id,
            "error_type": error_kind,
        },
    )
    await (service or get_alerting_service()).send_alert(alert)
