"""Data models for the on-call alert service."""

from .schemas import (
    ScheduleById,
    ScheduleByName,
    ScheduleReference,
    RosterEntry,
    AlertInfo,
    OverallOutcome,
    DialSuccess,
    DialFailure,
    DialUnknown,
    DialOutcome,
    AggregateResult,
    classify_overall_outcome,
    ErrorResponse,
    HealthCheckResponse,
)

__all__ = [
    "ScheduleById",
    "ScheduleByName",
    "ScheduleReference",
    "RosterEntry",
    "AlertInfo",
    "OverallOutcome",
    "DialSuccess",
    "DialFailure",
    "DialUnknown",
    "DialOutcome",
    "AggregateResult",
    "classify_overall_outcome",
    "ErrorResponse",
    "HealthCheckResponse",
]
