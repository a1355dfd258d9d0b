"""Tests for the HTTP API."""

import json
from datetime import datetime
from unittest.mock import AsyncMock
from urllib.parse import parse_qs

import httpx
import pytest
from fastapi.testclient import TestClient

from oncall_alert_service.api.app import create_app, get_alert_service, get_http_client
from oncall_alert_service.api.middleware import CORRELATION_HEADER
from oncall_alert_service.clients.transport import HttpRequestError
from oncall_alert_service.services.alert_service import AlertService
from tests.conftest import mock_client


class FakeProviders:
    """Answers roster, dialer and notification requests by host."""

    def __init__(self, recipients=("alice",), contacts=None, dial_status="active",
                 schedule_status=200, user_status=200):
        self.recipients = list(recipients)
        self.contacts = contacts if contacts is not None else {
            "alice": [{"to": "49-123-456", "contactMethod": "voice"},
                      {"to": "49-123-456", "contactMethod": "email"}],
        }
        self.dial_status = dial_status
        self.schedule_status = schedule_status
        self.user_status = user_status
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host = request.url.host
        path = request.url.path

        if host == "roster.example.com" and path.endswith("/on-calls"):
            if self.schedule_status != 200:
                return httpx.Response(self.schedule_status, json={"message": "No schedule exists"})
            return httpx.Response(200, json={"data": {"onCallRecipients": self.recipients}})

        if host == "roster.example.com" and path.startswith("/v2/users/"):
            if self.user_status != 200:
                return httpx.Response(self.user_status, json={"message": "internal error"})
            username = path.rsplit("/", 1)[-1]
            return httpx.Response(200, json={
                "data": {"userContacts": self.contacts.get(username, [])}
            })

        if host == "dialer.example.com":
            return httpx.Response(201, json={"status": self.dial_status})

        if host == "hooks.example.com":
            return httpx.Response(200, text="ok")

        return httpx.Response(404)

    def dialed(self):
        return sorted(
            parse_qs(r.content.decode())["To"][0]
            for r in self.requests if r.url.host == "dialer.example.com"
        )


def make_client(config, providers=None):
    app = create_app(config)
    providers = providers or FakeProviders()
    http_client = mock_client(providers)
    app.dependency_overrides[get_http_client] = lambda: http_client
    return TestClient(app), providers


class TestHealth:

    def test_health(self, service_config):
        client, _ = make_client(service_config)

        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["notifications_enabled"] is False
        assert datetime.fromisoformat(data["timestamp"].replace("Z", "+00:00")).tzinfo is not None

    def test_correlation_id_is_echoed(self, service_config):
        client, _ = make_client(service_config)

        response = client.get("/health", headers={CORRELATION_HEADER: "corr-abc"})

        assert response.headers[CORRELATION_HEADER] == "corr-abc"

    def test_correlation_id_is_generated(self, service_config):
        client, _ = make_client(service_config)

        response = client.get("/health")

        assert response.headers[CORRELATION_HEADER]


class TestOnCallNumber:

    def test_lookup_by_name(self, service_config):
        client, providers = make_client(service_config)

        response = client.get("/oncallnumber", params={"name": "ops"})

        assert response.status_code == 200
        assert response.json() == {
            "username": "alice",
            "phone_number": "+49123456",
            "full_roster": [{"name": "alice", "phone_numbers": ["+49123456"]}],
        }
        assert providers.requests[0].url.params["scheduleIdentifierType"] == "name"
        assert providers.dialed() == []

    def test_lookup_by_id(self, service_config):
        client, providers = make_client(service_config)

        response = client.get("/oncallnumber", params={"id": "abc-123"})

        assert response.status_code == 200
        assert providers.requests[0].url.params["scheduleIdentifierType"] == "id"

    @pytest.mark.parametrize("params", [{}, {"id": "abc", "name": "ops"}, {"name": ""}])
    def test_exactly_one_identifier_required(self, service_config, params):
        client, providers = make_client(service_config)

        response = client.get("/oncallnumber", params=params)

        assert response.status_code == 422
        assert providers.requests == []

    @pytest.mark.parametrize("params", [{"name": ".."}, {"id": "."}])
    def test_dot_segment_identifier_rejected(self, service_config, params):
        client, providers = make_client(service_config)

        response = client.get("/oncallnumber", params=params)

        assert response.status_code == 422
        assert providers.requests == []

    def test_no_one_on_call(self, service_config):
        client, _ = make_client(service_config, FakeProviders(recipients=[]))

        response = client.get("/oncallnumber", params={"name": "ops"})

        assert response.status_code == 418
        assert "no one is currently on call" in response.json()["detail"]

    def test_no_phone_number(self, service_config):
        providers = FakeProviders(recipients=["bob"], contacts={})
        client, _ = make_client(service_config, providers)

        response = client.get("/oncallnumber", params={"name": "ops"})

        assert response.status_code == 418
        assert response.json()["detail"] == "User [bob] has no phone number configured!"

    def test_schedule_lookup_rejected(self, service_config):
        client, _ = make_client(service_config, FakeProviders(schedule_status=404))

        response = client.get("/oncallnumber", params={"name": "nope"})

        assert response.status_code == 422
        assert "No schedule exists" in response.json()["detail"]

    def test_contact_lookup_failed(self, service_config):
        client, _ = make_client(service_config, FakeProviders(user_status=500))

        response = client.get("/oncallnumber", params={"name": "ops"})

        assert response.status_code == 500
        assert "alice" in response.json()["detail"]


class TestAlert:

    def test_alert_success(self, service_config):
        providers = FakeProviders(
            recipients=["alice", "bob"],
            contacts={
                "alice": [{"to": "49-111", "contactMethod": "voice"}],
                "bob": [{"to": "49-222", "contactMethod": "sms"}],
            },
        )
        client, _ = make_client(service_config, providers)

        response = client.get("/alert", params={"name": "ops", "workflow": "FW123"})

        assert response.status_code == 200
        data = response.json()
        assert data["overall"] == "success"
        assert sorted(o["number"] for o in data["per_number"]) == ["+49111", "+49222"]
        assert providers.dialed() == ["+49111", "+49222"]
        dial_urls = {str(r.url) for r in providers.requests if r.url.host == "dialer.example.com"}
        assert dial_urls == {"https://dialer.example.com/v2/Flows/FW123/Executions/"}

    def test_alert_uses_default_workflow(self, service_config):
        client, providers = make_client(service_config)

        response = client.get("/alert", params={"id": "abc"})

        assert response.status_code == 200
        dial_request = next(r for r in providers.requests if r.url.host == "dialer.example.com")
        assert dial_request.url.path == "/v2/Flows/FW-default/Executions/"

    def test_alert_without_any_workflow(self, service_config, dialer_config):
        config = service_config.model_copy(
            update={"dialer": dialer_config.model_copy(update={"default_workflow_id": None})}
        )
        client, providers = make_client(config)

        response = client.get("/alert", params={"name": "ops"})

        assert response.status_code == 422
        assert providers.requests == []

    def test_alert_unknown_status_is_failure(self, service_config):
        client, _ = make_client(service_config, FakeProviders(dial_status="ended"))

        response = client.get("/alert", params={"name": "ops", "workflow": "FW123"})

        assert response.status_code == 200
        assert response.json() == {
            "per_number": [{"outcome": "unknown", "number": "+49123456", "status": "ended"}],
            "overall": "failure",
        }

    def test_alert_roster_error(self, service_config):
        client, providers = make_client(service_config, FakeProviders(recipients=[]))

        response = client.get("/alert", params={"name": "ops", "workflow": "FW123"})

        assert response.status_code == 418
        assert providers.dialed() == []

    def test_alert_notifies_slack(self, service_config, notification_config):
        config = service_config.model_copy(update={"notification": notification_config})
        client, providers = make_client(config)

        response = client.get("/alert", params={"name": "ops", "workflow": "FW123"})

        assert response.status_code == 200
        (slack_request,) = [r for r in providers.requests if r.url.host == "hooks.example.com"]
        assert "success" in json.loads(slack_request.content)["text"]


class TestErrorHandling:

    def test_unexpected_error_returns_500(self, service_config):
        app = create_app(service_config)
        service = AsyncMock(spec=AlertService)
        service.lookup.side_effect = RuntimeError("boom")
        app.dependency_overrides[get_alert_service] = lambda: service

        response = TestClient(app).get("/oncallnumber", params={"name": "ops"})

        assert response.status_code == 500
        assert response.json() == {
            "error": "Internal Server Error",
            "message": "An unexpected error occurred",
        }

    def test_unclaimed_provider_error_returns_502(self, service_config):
        app = create_app(service_config)
        service = AsyncMock(spec=AlertService)
        service.lookup.side_effect = HttpRequestError("https://roster.example.com/v2/", OSError("down"))
        app.dependency_overrides[get_alert_service] = lambda: service

        response = TestClient(app).get("/oncallnumber", params={"name": "ops"})

        assert response.status_code == 502
        assert response.json()["error"] == "Bad Gateway"
