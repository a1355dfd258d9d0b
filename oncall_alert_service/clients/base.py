"""Abstract interface for secondary notification channels."""

from abc import ABC, abstractmethod

from oncall_alert_service.models.schemas import AggregateResult, ScheduleReference


class NotificationChannel(ABC):
    """Channel that is told about every alert after the calls went out."""

    @abstractmethod
    async def notify_alert(self, schedule: ScheduleReference, workflow_id: str,
                           result: AggregateResult) -> bool:
        """Publish a summary of an alert.

        Args:
            schedule: Schedule whose on-call people were alerted
            workflow_id: Dialer workflow that was triggered
            result: Aggregated dial outcome

        Returns:
            True if the summary was delivered, False otherwise. Delivery
            problems must never raise.
        """
        pass
