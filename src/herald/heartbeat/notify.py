"""Best-effort alert notifications to a team chat webhook."""

from __future__ import annotations

from collections import deque

import httpx

from herald.logging import get_logger
from herald.models import Alert, AlertLevel

logger = get_logger(__name__)

LEVEL_EMOJI: dict[str, str] = {
    "success": "✅",
    "warning": "⚠️",
    "error": "🚨",
}


def format_chat_text(alert: Alert) -> str:
    """Render an alert as a single chat message (Slack mrkdwn)."""
    return f"{LEVEL_EMOJI[alert.level]} *{alert.title}*\n{alert.message}"


class AlertNotifier:
    """Sends monitor alerts to a chat webhook (e.g. a Slack incoming webhook).

    Every alert is logged. When a webhook URL is configured the alert is also
    POSTed once; failures are logged and never retried or raised.
    """

    def __init__(
        self,
        webhook_url: str | None = None,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._webhook_url = webhook_url
        self._timeout = timeout_seconds
        self._client = client
        # Most recent alerts, newest last
        self.recent: deque[Alert] = deque(maxlen=50)

    @property
    def enabled(self) -> bool:
        return bool(self._webhook_url)

    async def notify(self, level: AlertLevel, title: str, message: str) -> bool:
        """Log an alert and POST it to the chat webhook if configured.

        Returns:
            True if the chat webhook accepted the alert.
        """
        alert = Alert(level=level, title=title, message=message)
        self.recent.append(alert)

        log = logger.error if level == "error" else logger.info
        log("Alert", alert_level=level, title=title, alert_message=message)

        if not self._webhook_url:
            return False

        body = {**alert.model_dump(), "text": format_chat_text(alert)}
        try:
            if self._client is not None:
                response = await self._client.post(self._webhook_url, json=body)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(self._webhook_url, json=body)
        except httpx.HTTPError as e:
            logger.warning("Failed to send chat notification", error=str(e), title=title)
            return False

        if not response.is_success:
            logger.warning(
                "Chat notification rejected",
                status_code=response.status_code,
                title=title,
            )
            return False
        return True
