"""Pytest configuration and fixtures."""

import httpx
import pytest
from pydantic import SecretStr

from oncall_alert_service.config.settings import (
    DialerProviderConfig,
    NotificationProviderConfig,
    RosterProviderConfig,
    ServiceConfig,
)

ROSTER_BASE = "https://roster.example.com/v2/"
DIALER_BASE = "https://dialer.example.com/v2/Flows/"
SLACK_BASE = "https://hooks.example.com/services/T000/B000"

ROSTER_TOKEN = "GenieKey roster-secret-123"
DIALER_TOKEN = "Basic dialer-secret-456"
SLACK_TOKEN = "Bearer slack-secret-789"

OUTGOING_NUMBER = "+4930123456"


def mock_client(handler) -> httpx.AsyncClient:
    """Create an AsyncClient whose requests are answered by ``handler``."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def roster_config():
    """Roster provider pointing at a fake base url."""
    return RosterProviderConfig(base_url=ROSTER_BASE, credential=SecretStr(ROSTER_TOKEN))


@pytest.fixture
def dialer_config():
    """Dialer provider pointing at a fake base url."""
    return DialerProviderConfig(
        base_url=DIALER_BASE,
        credential=SecretStr(DIALER_TOKEN),
        outgoing_number=OUTGOING_NUMBER,
        default_workflow_id="FW-default",
    )


@pytest.fixture
def notification_config():
    """Notification channel pointing at a fake webhook."""
    return NotificationProviderConfig(base_url=SLACK_BASE, credential=SecretStr(SLACK_TOKEN))


@pytest.fixture
def service_config(roster_config, dialer_config):
    """Complete config without the optional notification channel."""
    return ServiceConfig(
        bind_address="127.0.0.1",
        bind_port=2368,
        roster=roster_config,
        dialer=dialer_config,
    )
