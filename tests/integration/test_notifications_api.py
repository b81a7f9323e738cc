"""Integration tests for the notifications REST API."""

from __future__ import annotations

import uuid

import pytest

from tests.utils import TENANT

API = "/api/v1/notifications"


async def create_subscription(client, **overrides):
    payload = {
        "tenant_id": TENANT,
        "user_id": "tech@example.com",
        "events": ["assigned"],
        "channels": ["email", "in_app"],
    }
    payload.update(overrides)
    response = await client.post(f"{API}/subscriptions", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.integration
class TestSubscriptionEndpoints:
    @pytest.mark.asyncio
    async def test_crud_round_trip(self, client):
        created = await create_subscription(client, quiet_hours_start="22:00", quiet_hours_end="06:00")
        subscription_url = f"{API}/subscriptions/{created['id']}"

        fetched = await client.get(subscription_url)
        assert fetched.status_code == 200
        assert fetched.json()["channels"] == ["email", "in_app"]

        updated = await client.patch(subscription_url, json={"digest_enabled": True, "digest_frequency": "hourly"})
        assert updated.status_code == 200
        assert updated.json()["digest_enabled"] is True
        assert updated.json()["quiet_hours_start"] == "22:00"

        listed = await client.get(f"{API}/subscriptions", params={"tenant_id": TENANT})
        assert [sub["id"] for sub in listed.json()] == [created["id"]]

        deleted = await client.delete(subscription_url)
        assert deleted.status_code == 204
        missing = await client.get(subscription_url)
        assert missing.status_code == 404
        assert missing.headers["content-type"].startswith("application/problem+json")

    @pytest.mark.asyncio
    async def test_empty_channels_rejected(self, client):
        response = await client.post(
            f"{API}/subscriptions",
            json={"tenant_id": TENANT, "user_id": "u-1", "channels": []},
        )

        assert response.status_code == 422
        assert response.json()["type"] == "validation-error"

    @pytest.mark.asyncio
    async def test_malformed_quiet_hours_rejected(self, client):
        response = await client.post(
            f"{API}/subscriptions",
            json={"tenant_id": TENANT, "user_id": "u-1", "channels": ["sms"], "quiet_hours_start": "25:00"},
        )

        assert response.status_code == 422


@pytest.mark.integration
class TestTemplateEndpoints:
    @pytest.mark.asyncio
    async def test_create_list_delete(self, client):
        payload = {"tenant_id": TENANT, "event": "assigned", "channel": "email", "body": "{{title}}"}

        created = await client.post(f"{API}/templates", json=payload)
        assert created.status_code == 201
        duplicate = await client.post(f"{API}/templates", json=payload)
        assert duplicate.status_code == 409

        listed = await client.get(f"{API}/templates", params={"tenant_id": TENANT, "event": "assigned"})
        assert len(listed.json()) == 1

        deleted = await client.delete(f"{API}/templates/{created.json()['id']}")
        assert deleted.status_code == 204


@pytest.mark.integration
class TestNotificationEndpoints:
    @pytest.mark.asyncio
    async def test_create_routes_and_exposes_delivery_log(self, client, fake_senders):
        await create_subscription(client)
        await client.post(
            f"{API}/templates",
            json={
                "tenant_id": TENANT,
                "event": "assigned",
                "channel": "email",
                "subject": "Assigned: {{work_order_title}}",
                "body": "{{work_order_title}} ({{priority}})",
            },
        )

        response = await client.post(
            API,
            json={
                "tenant_id": TENANT,
                "recipient_id": "tech@example.com",
                "category": "assigned",
                "title": "Work order assignment",
                "message": "You have a new work order",
                "template_context": {"work_order_title": "Replace pump seal", "priority": "high"},
                "work_order_id": "WO-17",
            },
        )

        assert response.status_code == 201, response.text
        body = response.json()
        assert body["dispatch"] == {"sent": 2, "failed": 0, "deferred": 0, "queued": 0}
        assert body["notification"]["delivery_state"] == "sent"
        email_message = fake_senders["email"].calls[0][1]
        assert email_message.subject == "Assigned: Replace pump seal"
        assert email_message.body == "Replace pump seal (high)"

        detail = await client.get(f"{API}/{body['notification']['id']}")
        assert detail.status_code == 200
        deliveries = detail.json()["deliveries"]
        assert sorted(entry["channel"] for entry in deliveries) == ["email", "in_app"]
        assert all(entry["status"] == "sent" and entry["attempt"] == 1 for entry in deliveries)

        listed = await client.get(API, params={"tenant_id": TENANT, "delivery_state": "sent"})
        assert [item["id"] for item in listed.json()] == [body["notification"]["id"]]

    @pytest.mark.asyncio
    async def test_failed_send_is_pending_with_retry_scheduled(self, client, fake_senders):
        fake_senders["email"].default = False
        await create_subscription(client, channels=["email"])

        response = await client.post(
            API,
            json={
                "tenant_id": TENANT,
                "recipient_id": "tech@example.com",
                "category": "assigned",
                "title": "Work order assignment",
                "message": "You have a new work order",
            },
        )

        body = response.json()
        assert body["dispatch"]["failed"] == 1
        assert body["notification"]["delivery_state"] == "pending"
        detail = (await client.get(f"{API}/{body['notification']['id']}")).json()
        assert detail["deliveries"][0]["next_attempt_at"] is not None
        assert detail["deliveries"][0]["error_message"] == "gateway unavailable"

    @pytest.mark.asyncio
    async def test_unknown_notification_is_404(self, client):
        response = await client.get(f"{API}/{uuid.uuid4()}")

        assert response.status_code == 404
        assert response.json()["status"] == 404


@pytest.mark.integration
class TestAdminEndpoints:
    @pytest.mark.asyncio
    async def test_digest_listing_and_sweeps(self, client):
        await create_subscription(
            client,
            channels=["email"],
            quiet_hours_start="00:00",
            quiet_hours_end="23:59",
            digest_enabled=True,
            digest_frequency="daily",
        )
        created = await client.post(
            API,
            json={
                "tenant_id": TENANT,
                "recipient_id": "tech@example.com",
                "category": "assigned",
                "title": "Work order assignment",
                "message": "You have a new work order",
            },
        )
        assert created.json()["dispatch"]["deferred"] == 1

        digests = (await client.get(f"{API}/admin/digests", params={"tenant_id": TENANT})).json()
        assert len(digests) == 1
        assert digests[0]["channel"] == "email"
        assert digests[0]["item_count"] == 1

        digest_report = await client.post(f"{API}/admin/sweeps/digest")
        assert digest_report.status_code == 200
        assert digest_report.json()["sweep"] == "digest"
        # Not due until the next local midnight
        assert digest_report.json()["claimed"] == 0

        retry_report = await client.post(f"{API}/admin/sweeps/retry")
        assert retry_report.json() == {
            "sweep": "retry",
            "claimed": 0,
            "sent": 0,
            "failed": 0,
            "skipped": 0,
            "errors": 0,
        }


@pytest.mark.integration
@pytest.mark.asyncio
async def test_metrics_endpoint(client):
    response = await client.get("/metrics")

    assert response.status_code == 200
    assert "notification" in response.text
