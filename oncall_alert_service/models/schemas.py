"""Pydantic models for the on-call alert service."""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, List, Literal, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

# Path segments a relative url join would resolve away
DOT_SEGMENTS = frozenset({".", ".."})


class _ScheduleIdentifier(BaseModel):
    model_config = ConfigDict(frozen=True)

    identifier: str = Field(..., min_length=1)

    @field_validator('identifier')
    @classmethod
    def reject_dot_segments(cls, v: str) -> str:
        if v in DOT_SEGMENTS:
            raise ValueError("schedule identifier must not be '.' or '..'")
        return v


class ScheduleById(_ScheduleIdentifier):
    """Schedule referenced by its provider id."""

    @property
    def identifier_type(self) -> str:
        return "id"


class ScheduleByName(_ScheduleIdentifier):
    """Schedule referenced by its human readable name."""

    @property
    def identifier_type(self) -> str:
        return "name"


ScheduleReference = Union[ScheduleById, ScheduleByName]


class RosterEntry(BaseModel):
    """One on-call recipient and every voice-capable number found for them."""

    name: str
    phone_numbers: List[str] = Field(default_factory=list)

    @field_validator('phone_numbers')
    @classmethod
    def sort_and_dedup(cls, v: List[str]) -> List[str]:
        return sorted(set(v))


class AlertInfo(BaseModel):
    """Result of an on-call lookup.

    ``username`` and ``phone_number`` belong to the primary contact: the first
    recipient that has a number, and the first of their numbers.
    """

    username: str
    phone_number: str
    full_roster: List[RosterEntry]


class OverallOutcome(str, Enum):
    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"
    FAILURE = "failure"


class DialSuccess(BaseModel):
    """The dialer accepted the call and reported it as active."""

    outcome: Literal["success"] = "success"
    number: str


class DialFailure(BaseModel):
    """The call could not be triggered at all."""

    outcome: Literal["failure"] = "failure"
    number: str
    error: str


class DialUnknown(BaseModel):
    """The dialer answered, but with a status other than active.

    The call may still fail asynchronously on the provider side, so this is
    neither a confirmed success nor a hard failure.
    """

    outcome: Literal["unknown"] = "unknown"
    number: str
    status: str


DialOutcome = Annotated[
    Union[DialSuccess, DialFailure, DialUnknown],
    Field(discriminator="outcome"),
]


def classify_overall_outcome(outcomes: Sequence[Union[DialSuccess, DialFailure, DialUnknown]]) -> OverallOutcome:
    """Fold per-number outcomes into one overall outcome.

    Any success counts: a single successful call turns an otherwise failed
    batch into a partial success, never into a silent success.
    """
    succeeded = any(isinstance(outcome, DialSuccess) for outcome in outcomes)
    unsettled = any(isinstance(outcome, (DialFailure, DialUnknown)) for outcome in outcomes)

    if succeeded and unsettled:
        return OverallOutcome.PARTIAL_SUCCESS
    if succeeded:
        return OverallOutcome.SUCCESS
    return OverallOutcome.FAILURE


class AggregateResult(BaseModel):
    """Outcome of dialing a batch of numbers."""

    per_number: List[DialOutcome] = Field(default_factory=list)

    @computed_field
    @property
    def overall(self) -> OverallOutcome:
        return classify_overall_outcome(self.per_number)


class ErrorResponse(BaseModel):
    """Standard error response model."""

    error: str = Field(..., description="Error type or code")
    message: str = Field(..., description="Human-readable error message")


class HealthCheckResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str = Field(..., description="Service status")
    notifications_enabled: bool = Field(..., description="Whether the notification channel is configured")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
