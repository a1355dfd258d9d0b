"""Clients for the external providers."""

from oncall_alert_service.clients.base import NotificationChannel
from oncall_alert_service.clients.connection import HttpClientManager
from oncall_alert_service.clients.notifier import SlackNotifier
from oncall_alert_service.clients.transport import (
    TransportError,
    HttpRequestError,
    HttpErrorResponse,
    HttpErrorResponseUndecodable,
    ParseJsonError,
    send_request,
    send_json_request,
)

__all__ = [
    "NotificationChannel",
    "HttpClientManager",
    "SlackNotifier",
    "TransportError",
    "HttpRequestError",
    "HttpErrorResponse",
    "HttpErrorResponseUndecodable",
    "ParseJsonError",
    "send_request",
    "send_json_request",
]
