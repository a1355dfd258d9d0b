"""Slack notification channel."""

import logging

import httpx

from oncall_alert_service.clients.base import NotificationChannel
from oncall_alert_service.clients.transport import TransportError, build_auth_headers, send_request
from oncall_alert_service.config.logging import LoggingService
from oncall_alert_service.config.settings import NotificationProviderConfig
from oncall_alert_service.models.schemas import (
    AggregateResult,
    DialFailure,
    DialSuccess,
    DialUnknown,
    ScheduleReference,
)

logger = logging.getLogger(__name__)
logging_service = LoggingService(__name__)


def format_alert_summary(schedule: ScheduleReference, workflow_id: str,
                         result: AggregateResult) -> str:
    """Render an alert result as a short plain-text message."""
    lines = [
        f"On-call alert for schedule {schedule.identifier} "
        f"(workflow {workflow_id}): {result.overall.value}"
    ]
    for outcome in result.per_number:
        if isinstance(outcome, DialSuccess):
            lines.append(f"- {outcome.number}: call active")
        elif isinstance(outcome, DialUnknown):
            lines.append(f"- {outcome.number}: status {outcome.status}")
        elif isinstance(outcome, DialFailure):
            lines.append(f"- {outcome.number}: failed ({outcome.error})")
    if not result.per_number:
        lines.append("- no numbers were dialed")
    return "\n".join(lines)


class SlackNotifier(NotificationChannel):
    """Posts alert summaries to a Slack webhook."""

    def __init__(self, config: NotificationProviderConfig, client: httpx.AsyncClient):
        self.config = config
        self.client = client
        self._headers = build_auth_headers(config.credential)

    async def notify_alert(self, schedule: ScheduleReference, workflow_id: str,
                           result: AggregateResult) -> bool:
        request = self.client.build_request(
            "POST",
            self.config.base_url,
            headers=self._headers,
            json={"text": format_alert_summary(schedule, workflow_id, result)},
        )
        try:
            await send_request(self.client, request)
        except TransportError as e:
            logging_service.log_operation(
                "warning",
                "Slack notification failed",
                operation="notify_alert",
                schedule=schedule.identifier,
                error=str(e),
            )
            return False

        logging_service.log_operation(
            "info",
            "Slack notification sent",
            operation="notify_alert",
            schedule=schedule.identifier,
        )
        return True
