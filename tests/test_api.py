# tests/test_api.py
"""Tests for the FastAPI endpoints."""

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

from automagic.config import settings
from automagic.core.errors import StoreError
from automagic.core.messages.dispatch import DISPATCH_TASK_NAME
from automagic.core.messages.models import Recipient, ScheduledMessage, to_epoch_millis
from automagic.core.messages.use_cases import MessageUseCases
from automagic.core.scheduler.manager import get_task_scheduler
from automagic.core.single_instance import SingleInstanceLock
from automagic.interfaces.api.dependencies import get_use_cases, limiter
from automagic.interfaces.api.main import app, lifespan
from automagic.interfaces.api.schemas import ScheduledMessageResponse

FUTURE = datetime(2999, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def use_cases(repository):
    return MessageUseCases(repository)


@pytest.fixture
async def client(use_cases, monkeypatch):
    """AsyncClient against the app with a temporary repository."""
    monkeypatch.setattr(settings, "api_auth_key", "")
    monkeypatch.setattr(limiter, "enabled", False)
    app.dependency_overrides[get_use_cases] = lambda: use_cases

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


class TestRecipientEndpoints:
    """Tests for /recipients."""

    @pytest.mark.asyncio
    async def test_create_recipient(self, client):
        response = await client.post(
            "/recipients", json={"name": "Mom", "phoneNumber": "+27820000000"}
        )

        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Mom"
        assert data["phoneNumber"] == "+27820000000"
        assert isinstance(data["id"], int)

    @pytest.mark.asyncio
    async def test_create_recipient_missing_name(self, client):
        response = await client.post("/recipients", json={"phoneNumber": "+1"})

        assert response.status_code == 400
        assert response.json()["detail"] == "NoNameProvided"

    @pytest.mark.asyncio
    async def test_create_recipient_duplicate_phone(self, client):
        await client.post("/recipients", json={"name": "Mom", "phoneNumber": "+1"})

        response = await client.post(
            "/recipients", json={"name": "Dad", "phoneNumber": "+1"}
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "PhoneNumberTaken"

    @pytest.mark.asyncio
    async def test_list_recipients_by_name(self, client):
        await client.post("/recipients", json={"name": "Mom", "phoneNumber": "+1"})
        await client.post("/recipients", json={"name": "Dad", "phoneNumber": "+2"})

        everyone = await client.get("/recipients")
        only_dad = await client.get("/recipients", params={"name": "Dad"})

        assert [r["name"] for r in everyone.json()] == ["Mom", "Dad"]
        assert [r["name"] for r in only_dad.json()] == ["Dad"]


class TestScheduledMessageEndpoints:
    """Tests for /scheduled-messages."""

    @pytest.mark.asyncio
    async def test_create_with_new_recipient(self, client):
        response = await client.post(
            "/scheduled-messages",
            json={
                "message": "Happy birthday",
                "scheduledDate": "2999-01-01T00:00:00Z",
                "name": "Mom",
                "phoneNumber": "+1",
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["message"] == "Happy birthday"
        assert data["scheduledDate"] == to_epoch_millis(FUTURE)
        assert data["failedToSend"] is False
        assert data["recipient"]["name"] == "Mom"

    @pytest.mark.asyncio
    async def test_create_with_epoch_millis_and_existing_recipient(self, client):
        recipient = (
            await client.post("/recipients", json={"name": "Mom", "phoneNumber": "+1"})
        ).json()

        response = await client.post(
            "/scheduled-messages",
            json={
                "message": "Hi",
                "scheduledDate": to_epoch_millis(FUTURE),
                "recipientId": recipient["id"],
            },
        )

        assert response.status_code == 201
        assert response.json()["recipient"]["id"] == recipient["id"]
        assert response.json()["scheduledDate"] == to_epoch_millis(FUTURE)

    @pytest.mark.asyncio
    async def test_naive_date_is_utc(self, client):
        response = await client.post(
            "/scheduled-messages",
            json={
                "message": "Hi",
                "scheduledDate": "2999-01-01T00:00:00",
                "name": "Mom",
                "phoneNumber": "+1",
            },
        )

        assert response.json()["scheduledDate"] == to_epoch_millis(FUTURE)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body,code",
        [
            ({"scheduledDate": "2999-01-01T00:00:00Z", "recipientId": 1}, "NoMessageProvided"),
            ({"message": "Hi", "recipientId": 1}, "NoScheduledDateProvided"),
            (
                {"message": "Hi", "scheduledDate": "2000-01-01T00:00:00Z", "recipientId": 1},
                "ScheduledDateInPast",
            ),
            (
                {"message": "Hi", "scheduledDate": "2999-01-01T00:00:00Z", "recipientId": 7},
                "RecipientNotFound",
            ),
        ],
    )
    async def test_create_validation_errors(self, client, body, code):
        response = await client.post("/scheduled-messages", json=body)

        assert response.status_code == 400
        assert response.json()["detail"] == code

    @pytest.mark.asyncio
    @pytest.mark.parametrize("scheduled_date", [10**20, -(10**20)])
    async def test_out_of_range_epoch_millis_returns_422(self, client, scheduled_date):
        response = await client.post(
            "/scheduled-messages",
            json={"message": "Hi", "scheduledDate": scheduled_date, "recipientId": 1},
        )

        assert response.status_code == 422
        assert "scheduledDate is out of range" in response.text

    @pytest.mark.asyncio
    async def test_list_and_delete(self, client):
        created = (
            await client.post(
                "/scheduled-messages",
                json={
                    "message": "Hi",
                    "scheduledDate": "2999-01-01T00:00:00Z",
                    "name": "Mom",
                    "phoneNumber": "+1",
                },
            )
        ).json()

        listed = await client.get("/scheduled-messages")
        assert [m["id"] for m in listed.json()] == [created["id"]]

        deleted = await client.delete(f"/scheduled-messages/{created['id']}")
        assert deleted.status_code == 204

        missing = await client.delete(f"/scheduled-messages/{created['id']}")
        assert missing.status_code == 404

        assert (await client.get("/scheduled-messages")).json() == []

    @pytest.mark.asyncio
    async def test_list_failed(self, client, repository):
        recipient = await repository.create_recipient("Mom", "+1")
        msg = await repository.create_scheduled_message("Hi", FUTURE, recipient.id)
        await repository.create_scheduled_message("Later", FUTURE, recipient.id)
        await repository.mark_scheduled_message_failed(msg.id)

        response = await client.get("/scheduled-messages/failed")

        assert response.status_code == 200
        assert [m["id"] for m in response.json()] == [msg.id]
        assert response.json()[0]["failedToSend"] is True


class TestResponseSchemas:
    """Tests for building responses from stored models."""

    def test_message_response_from_model(self):
        recipient = Recipient(id=3, name="Mom", phone_number="+1")
        msg = ScheduledMessage(
            id=9, recipient=recipient, message="Hi", scheduled_date=FUTURE, failed_to_send=True
        )

        response = ScheduledMessageResponse.from_message(msg)

        assert response.model_dump(by_alias=True) == {
            "id": 9,
            "recipient": {"id": 3, "name": "Mom", "phoneNumber": "+1"},
            "message": "Hi",
            "scheduledDate": to_epoch_millis(FUTURE),
            "failedToSend": True,
        }


class TestHealthEndpoint:
    """Tests for GET /health."""

    @pytest.mark.asyncio
    async def test_health_without_tasks(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["scheduler_running"] is False
        assert data["tasks"] == []


class TestApiSecurity:
    """Tests for API authentication and rate limiting."""

    @pytest.mark.asyncio
    async def test_missing_api_key_returns_401(self, client, monkeypatch):
        monkeypatch.setattr(settings, "api_auth_key", "secret-api-key")

        response = await client.get("/recipients")

        assert response.status_code == 401
        assert "Missing API key" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_invalid_api_key_returns_403(self, client, monkeypatch):
        monkeypatch.setattr(settings, "api_auth_key", "secret-api-key")

        response = await client.get("/recipients", headers={"X-API-Key": "wrong-key"})

        assert response.status_code == 403
        assert "Invalid API key" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_valid_api_key_succeeds(self, client, monkeypatch):
        monkeypatch.setattr(settings, "api_auth_key", "secret-api-key")

        response = await client.get(
            "/recipients", headers={"X-API-Key": "secret-api-key"}
        )

        assert response.status_code == 200
        assert response.json() == []

    @pytest.mark.asyncio
    async def test_health_needs_no_api_key(self, client, monkeypatch):
        monkeypatch.setattr(settings, "api_auth_key", "secret-api-key")

        response = await client.get("/health")

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_rate_limit_exceeded_returns_429(self, client, monkeypatch):
        monkeypatch.setattr(limiter, "enabled", True)
        monkeypatch.setattr(settings, "api_rate_limit", 2)
        limiter.reset()

        statuses = [(await client.get("/health")).status_code for _ in range(3)]

        limiter.reset()
        assert statuses == [200, 200, 429]


class TestLifespan:
    """Tests for daemon startup inside the app lifespan."""

    @pytest.fixture
    def lock(self):
        lock = MagicMock(spec=SingleInstanceLock)
        with patch("automagic.interfaces.api.main.SingleInstanceLock", return_value=lock):
            yield lock

    @pytest.mark.asyncio
    async def test_store_failure_at_startup_releases_lock(self, lock):
        with patch(
            "automagic.interfaces.api.main.get_repository",
            side_effect=StoreError("unable to open database file"),
        ):
            with pytest.raises(StoreError):
                async with lifespan(app):
                    pass

        lock.acquire.assert_awaited_once()
        lock.shutdown.assert_called_once()

    @pytest.mark.asyncio
    async def test_startup_and_shutdown(self, lock, temp_db, monkeypatch):
        monkeypatch.setattr(settings, "database_path", temp_db)
        monkeypatch.setattr(settings, "mudslide_command", "true")

        async with lifespan(app):
            lock.shutdown.assert_not_called()
            assert get_task_scheduler().get_task(DISPATCH_TASK_NAME) is not None

        lock.shutdown.assert_called_once()
