"""Concurrent call dispatch through the dialer provider."""

import asyncio
import logging
from typing import Sequence, Union

import httpx
from pydantic import BaseModel

from oncall_alert_service.clients.transport import (
    TransportError,
    build_auth_headers,
    path_segment,
    send_json_request,
)
from oncall_alert_service.config.logging import LoggingService
from oncall_alert_service.config.settings import DialerProviderConfig
from oncall_alert_service.models.schemas import (
    AggregateResult,
    DialFailure,
    DialSuccess,
    DialUnknown,
    OverallOutcome,
)

logger = logging.getLogger(__name__)
logging_service = LoggingService(__name__)

# Status the dialer reports for an execution it accepted and started
ACCEPTED_STATUS = "active"


class ExecutionResponse(BaseModel):
    status: str


class Dispatcher:
    """Rings a list of numbers in parallel and aggregates the outcomes."""

    def __init__(self, config: DialerProviderConfig, client: httpx.AsyncClient):
        self.config = config
        self.client = client
        self._headers = build_auth_headers(config.credential)

    def execution_url(self, workflow_id: str) -> httpx.URL:
        return httpx.URL(self.config.base_url).join(f"{path_segment(workflow_id)}/Executions/")

    async def dispatch(self, numbers: Sequence[str], workflow_id: str) -> AggregateResult:
        """Trigger one workflow execution per number, all at once.

        Per-number failures are captured in the result and never raised, a
        partial outcome is still worth reporting.

        Args:
            numbers: Phone numbers to ring
            workflow_id: Dialer workflow to execute for each number

        Returns:
            AggregateResult with one outcome per number
        """
        url = self.execution_url(workflow_id)
        logging_service.log_operation(
            "info",
            "These numbers will be alerted",
            operation="dispatch",
            numbers=list(numbers),
            url=str(url),
            workflow_id=workflow_id,
            outgoing_number=self.config.outgoing_number,
        )

        outcomes = await asyncio.gather(*(self._dial(url, number) for number in numbers))
        result = AggregateResult(per_number=list(outcomes))

        logging_service.log_operation(
            "info" if result.overall == OverallOutcome.SUCCESS else "warning",
            "Dispatch finished",
            operation="dispatch",
            workflow_id=workflow_id,
            overall=result.overall.value,
        )
        return result

    async def _dial(self, url: httpx.URL, number: str) -> Union[DialSuccess, DialFailure, DialUnknown]:
        # Each call gets its own form body; headers and url are shared
        request = self.client.build_request(
            "POST",
            url,
            headers=self._headers,
            data={"From": self.config.outgoing_number, "To": number},
        )
        try:
            response = await send_json_request(self.client, request, ExecutionResponse)
        except TransportError as e:
            logging_service.log_dispatch_outcome(number, "failure", detail=str(e))
            return DialFailure(number=number, error=str(e))

        if response.status == ACCEPTED_STATUS:
            logging_service.log_dispatch_outcome(number, "success")
            return DialSuccess(number=number)

        logging_service.log_dispatch_outcome(number, "unknown", detail=f"status {response.status!r}")
        return DialUnknown(number=number, status=response.status)
