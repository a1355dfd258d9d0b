"""Resolve an on-call schedule to people and phone numbers."""

import logging
import re
from typing import List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field

from oncall_alert_service.clients.transport import (
    TransportError,
    build_auth_headers,
    path_segment,
    send_json_request,
)
from oncall_alert_service.config.logging import LoggingService
from oncall_alert_service.config.settings import RosterProviderConfig
from oncall_alert_service.models.schemas import AlertInfo, RosterEntry, ScheduleReference

logger = logging.getLogger(__name__)
logging_service = LoggingService(__name__)

SEPARATOR_PATTERN = re.compile(r"[\s\-./()]")


def normalize_phone_number(number: str) -> str:
    """Strip separators and return the number with a single leading ``+``.

    ``49-123-456`` and ``+49 123 456`` both become ``+49123456``.
    """
    digits = SEPARATOR_PATTERN.sub("", number)
    return f"+{digits.lstrip('+')}"


class RosterError(Exception):
    """Base class for roster lookup failures.

    ``status_code`` is the HTTP status the API answers with.
    """

    status_code = 500


class OnCallLookupError(RosterError):
    """Fetching the on-call recipients of the schedule failed."""

    status_code = 422

    def __init__(self, schedule: ScheduleReference, cause: TransportError):
        self.schedule = schedule
        self.cause = cause
        super().__init__(
            f"requesting on call person for schedule [{schedule.identifier}] failed: {cause}"
        )


class ContactLookupError(RosterError):
    """Fetching the contact methods of one recipient failed."""

    status_code = 500

    def __init__(self, username: str, cause: TransportError):
        self.username = username
        self.cause = cause
        super().__init__(f"requesting phone number failed for [{username}]: {cause}")


class NoOneOnCallError(RosterError):
    status_code = 418

    def __init__(self, schedule: ScheduleReference):
        self.schedule = schedule
        super().__init__(
            f"OpsGenie says no one is currently on call for schedule [{schedule.identifier}]!"
        )


class NoPhoneNumberError(RosterError):
    status_code = 418

    def __init__(self, username: str):
        self.username = username
        super().__init__(f"User [{username}] has no phone number configured!")


# Roster provider payloads

class _OnCallData(BaseModel):
    on_call_recipients: List[str] = Field(default_factory=list, alias="onCallRecipients")


class OnCallResponse(BaseModel):
    data: _OnCallData


class UserContact(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    to: str
    contact_method: str = Field(..., alias="contactMethod")
    enabled: bool = True


class _ContactData(BaseModel):
    user_contacts: List[UserContact] = Field(default_factory=list, alias="userContacts")


class ContactResponse(BaseModel):
    data: _ContactData


class RosterResolver:
    """Looks up who is on call and how to reach them."""

    def __init__(self, config: RosterProviderConfig, client: httpx.AsyncClient):
        self.config = config
        self.client = client
        self._headers = build_auth_headers(config.credential)

    async def resolve(self, schedule: ScheduleReference) -> AlertInfo:
        """Resolve a schedule to the people on call and their numbers.

        Args:
            schedule: Schedule to look up, by id or by name

        Returns:
            AlertInfo with the primary contact and the full roster

        Raises:
            OnCallLookupError: If the schedule query fails upstream
            NoOneOnCallError: If nobody is on call
            ContactLookupError: If any recipient's contacts cannot be fetched
            NoPhoneNumberError: If no recipient has a usable number
        """
        recipients = await self._fetch_recipients(schedule)
        if not recipients:
            logging_service.log_operation(
                "warning",
                "No one is on call",
                operation="resolve_roster",
                schedule=schedule.identifier,
            )
            raise NoOneOnCallError(schedule)

        # Sequential on purpose, this is a lookup and not a dispatch fan-out
        roster = []
        for username in recipients:
            numbers = await self._fetch_phone_numbers(username)
            roster.append(RosterEntry(name=username, phone_numbers=numbers))

        logging_service.log_operation(
            "info",
            "Resolved on-call roster",
            operation="resolve_roster",
            schedule=schedule.identifier,
            roster=[entry.model_dump() for entry in roster],
        )

        primary = self._select_primary(roster)
        if primary is None:
            raise NoPhoneNumberError(roster[0].name)

        return AlertInfo(
            username=primary.name,
            phone_number=primary.phone_numbers[0],
            full_roster=roster,
        )

    @staticmethod
    def _select_primary(roster: List[RosterEntry]) -> Optional[RosterEntry]:
        # First wins, there is no tie-break between people on call together
        for entry in roster:
            if entry.phone_numbers:
                return entry
        return None

    async def _fetch_recipients(self, schedule: ScheduleReference) -> List[str]:
        path = f"schedules/{path_segment(schedule.identifier, safe='@')}/on-calls"
        url = httpx.URL(self.config.base_url).join(path)
        request = self.client.build_request(
            "GET",
            url,
            headers=self._headers,
            params={
                "flat": "true",
                "scheduleIdentifierType": schedule.identifier_type,
            },
        )
        try:
            result = await send_json_request(self.client, request, OnCallResponse)
        except TransportError as e:
            logging_service.log_error(
                "Requesting on call person failed",
                e,
                operation="fetch_recipients",
                schedule=schedule.identifier,
            )
            raise OnCallLookupError(schedule, e) from e

        return result.data.on_call_recipients

    async def _fetch_phone_numbers(self, username: str) -> List[str]:
        logger.debug("Looking up phone number for user", extra={"username": username})
        url = httpx.URL(self.config.base_url).join(f"users/{path_segment(username, safe='@')}")
        request = self.client.build_request(
            "GET",
            url,
            headers=self._headers,
            params={"expand": "contact"},
        )
        try:
            result = await send_json_request(self.client, request, ContactResponse)
        except TransportError as e:
            logging_service.log_error(
                "Requesting phone number failed",
                e,
                operation="fetch_phone_numbers",
                username=username,
            )
            raise ContactLookupError(username, e) from e

        numbers = []
        for contact in result.data.user_contacts:
            if not contact.enabled:
                continue
            if contact.contact_method.lower() not in self.config.contact_methods:
                continue
            number = normalize_phone_number(contact.to)
            if number != "+":
                numbers.append(number)

        return sorted(set(numbers))
