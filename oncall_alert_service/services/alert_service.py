"""Alert service with business logic."""

import logging
from typing import List, Optional

from oncall_alert_service.clients.base import NotificationChannel
from oncall_alert_service.config.logging import LoggingService
from oncall_alert_service.models.schemas import AggregateResult, AlertInfo, ScheduleReference
from oncall_alert_service.services.dispatcher import Dispatcher
from oncall_alert_service.services.roster_resolver import RosterError, RosterResolver

logger = logging.getLogger(__name__)
logging_service = LoggingService(__name__)


def collect_numbers(info: AlertInfo) -> List[str]:
    """Flatten the roster into the list of numbers to ring.

    Roster order is kept; a number shared by two people is rung once.
    """
    numbers: List[str] = []
    for entry in info.full_roster:
        for number in entry.phone_numbers:
            if number not in numbers:
                numbers.append(number)
    return numbers


class AlertService:
    """Service layer for on-call lookups and alerts."""

    def __init__(self, resolver: RosterResolver, dispatcher: Dispatcher,
                 notifier: Optional[NotificationChannel] = None):
        """Initialize service with its collaborators.

        Args:
            resolver: Roster lookup
            dispatcher: Call fan-out
            notifier: Optional secondary notification channel
        """
        self.resolver = resolver
        self.dispatcher = dispatcher
        self.notifier = notifier

    async def lookup(self, schedule: ScheduleReference) -> AlertInfo:
        """Find out who is on call for a schedule.

        Raises:
            RosterError: If the roster cannot be resolved to a phone number
        """
        logging_service.log_operation(
            "info",
            "Got request for schedule",
            operation="lookup",
            schedule=schedule.identifier,
            identifier_type=schedule.identifier_type,
        )
        try:
            return await self.resolver.resolve(schedule)
        except RosterError as e:
            logging_service.log_operation(
                "warning",
                "Error while processing request",
                operation="lookup",
                schedule=schedule.identifier,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

    async def alert(self, schedule: ScheduleReference, workflow_id: str) -> AggregateResult:
        """Ring everyone on call for a schedule.

        Roster errors are raised; dial failures are reported in the result.

        Raises:
            RosterError: If the roster cannot be resolved to a phone number
        """
        info = await self.lookup(schedule)
        numbers = collect_numbers(info)

        result = await self.dispatcher.dispatch(numbers, workflow_id)

        if self.notifier is not None:
            await self.notifier.notify_alert(schedule, workflow_id, result)

        return result
