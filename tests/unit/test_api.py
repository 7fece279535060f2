"""
Tests for the FocusQ host API (FastAPI TestClient, fake collaborators).
"""

from datetime import timedelta
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient
from fixtures.digest_fakes import (
    FakeAnalyzer,
    FakeMessageSource,
    FakeMessagingChannel,
    slack_message,
)

from focusq.api.app import create_app
from focusq.contracts.events import EmailMessage
from focusq.digest.service import DigestService
from focusq.suggestions.aggregator import SuggestionAggregator


class FakeConverter:
    async def convert_item_to_task(self, item):
        return f"task-{item.message_id}"


@pytest.fixture
def service(settings, store, clock, now):
    messages = [slack_message("m1", now - timedelta(minutes=5), user="UVIP")]
    return DigestService(
        settings,
        store,
        source=FakeMessageSource(messages),
        analyzer=FakeAnalyzer(default_urgency="high"),
        channel=FakeMessagingChannel(),
        clock=clock,
    )


@pytest.fixture
def client(service):
    async def emails():
        return [EmailMessage(id="m1", subject="Urgent: budget", sender="cfo@example.com")]

    aggregator = SuggestionAggregator(ZoneInfo("UTC"), fetch_emails=emails)
    app = create_app(service, aggregator, task_converter=FakeConverter(), autostart=False)
    with TestClient(app) as test_client:
        yield test_client


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["digest_running"] is False


class TestSuggestions:
    def test_get_uses_collectors(self, client):
        response = client.get("/suggestions")

        assert response.status_code == 200
        body = response.json()
        assert body["timeOfDay"] in {"morning", "afternoon", "evening"}
        [suggestion] = body["suggestions"]
        assert suggestion["id"] == "email_m1"
        assert suggestion["sourceId"] == "m1"
        assert suggestion["priority"] == "high"

    def test_post_scores_supplied_items(self, client):
        response = client.post(
            "/suggestions",
            json={
                "emails": [
                    {
                        "id": "a",
                        "subject": "Hello",
                        "from": "Sam <sam@example.com>",
                        "isStarred": True,
                    },
                    {"id": "b", "subject": "Hi", "from": "kim@example.com"},
                ]
            },
        )

        assert response.status_code == 200
        scores = [s["score"] for s in response.json()["suggestions"]]
        assert scores == [90, 50]

    def test_post_rejects_malformed_items(self, client):
        response = client.post("/suggestions", json={"calendarEvents": [{"title": "no id"}]})
        assert response.status_code == 422


class TestDigestRoutes:
    def test_start_and_stop(self, client):
        started = client.post("/digest/start").json()
        assert started == {"started": True, "missing_configuration": []}
        assert client.get("/digest/status").json()["running"] is True

        assert client.post("/digest/stop").json() == {"stopped": True}
        assert client.get("/digest/status").json()["running"] is False

    def test_run_slot(self, client):
        response = client.post("/digest/run/09:00")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "sent"
        assert body["items"][0]["sourceId"] == "m1"
        assert body["items"][0]["score"] == 100

        again = client.post("/digest/run/09:00").json()
        assert again["status"] == "skipped_recent"

    def test_run_invalid_slot(self, client):
        assert client.post("/digest/run/25:99").status_code == 400

    def test_mark_task_created(self, client, store):
        response = client.post("/digest/tasks", json={"sourceId": "m1", "taskId": "task-7"})

        assert response.json() == {"recorded": True}
        assert store.has_task_created("m1")
        assert client.post("/digest/run/12:00").json()["status"] == "empty"

    def test_button_action_creates_task(self, client, store):
        response = client.post(
            "/digest/actions",
            json={
                "actions": [
                    {"action_id": "create_task_slack_m1", "value": '{"messageId": "m1"}'}
                ]
            },
        )

        assert response.json() == {"taskIds": ["task-m1"]}
        assert store.has_task_created("m1")


def test_run_without_collaborators_is_503(settings, store, clock):
    service = DigestService(settings, store, source=None, analyzer=None, channel=None, clock=clock)
    app = create_app(service, SuggestionAggregator(ZoneInfo("UTC")), autostart=True)

    with TestClient(app) as client:
        assert client.get("/health").json()["digest_running"] is False
        assert client.post("/digest/run/09:00").status_code == 503
        assert client.post("/digest/actions", json={"actions": []}).status_code == 501


def test_shutdown_waits_for_scheduler_task(service):
    app = create_app(service, SuggestionAggregator(ZoneInfo("UTC")), autostart=True)

    with TestClient(app) as client:
        assert client.get("/health").json()["digest_running"] is True

    assert not service.running
    assert service._task is None
