from __future__ import annotations

from fastapi.testclient import TestClient


def _seed_entry(client: TestClient, **overrides) -> None:
    log_store = client.app.state.log_store

    async def _add() -> None:
        await log_store.add_entry(
            title=overrides.get("title", "朝ラン"),
            mood=overrides.get("mood", "🤩"),
            tags=overrides.get("tags", ("運動",)),
            body=overrides.get("body", "5km走った"),
        )

    client.portal.call(_add)


def test_health_endpoint(test_client: TestClient) -> None:
    response = test_client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "version": "0.1.0-test"}


def test_readyz_without_bot_token(test_client: TestClient) -> None:
    response = test_client.get("/readyz")
    assert response.status_code == 200
    body = response.json()
    assert body["ready"] is True
    assert body["db"]["ok"] is True
    assert body["tg"]["detail"] == "telegram disabled"
    assert "BOT_TOKEN" in body["missing_config"]


def test_metrics_endpoint(test_client: TestClient) -> None:
    test_client.get("/healthz")
    response = test_client.get("/metrics")
    assert response.status_code == 200
    assert "hibi_requests_total" in response.text


def test_admin_routes_require_token(test_client: TestClient) -> None:
    response = test_client.get("/api/v1/streak", headers={"Authorization": "Bearer wrong"})
    assert response.status_code == 401
    response = test_client.post("/api/v1/admin/run/weekly", headers={"Authorization": ""})
    assert response.status_code == 401


def test_streak_and_stats_reflect_entries(test_client: TestClient) -> None:
    empty = test_client.get("/api/v1/streak")
    assert empty.status_code == 200
    assert empty.json()["count"] == 0

    _seed_entry(test_client)
    _seed_entry(test_client, title="昼", mood="😊", tags=("食事", "運動"))

    stats = test_client.get("/api/v1/stats", params={"days": 7})
    assert stats.status_code == 200
    body = stats.json()
    assert body["days"] == 7
    assert body["entries"] == 2
    assert body["unique_days"] == 1
    assert body["tags"][0] == {"label": "運動", "count": 2}
    assert len(body["weekdays"]) == 7


def test_stats_rejects_out_of_range_days(test_client: TestClient) -> None:
    assert test_client.get("/api/v1/stats", params={"days": 0}).status_code == 422
    assert test_client.get("/api/v1/stats", params={"days": 400}).status_code == 422


def test_rebuilt_streak_counts_today(test_client: TestClient) -> None:
    _seed_entry(test_client)

    response = test_client.get("/api/v1/streak")

    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 1
    assert body["has_today_record"] is True
    assert body["total_days"] == 1


def test_trigger_endpoints_without_owner_chat(test_client: TestClient) -> None:
    reminder = test_client.post("/api/v1/admin/run/reminder")
    weekly = test_client.post("/api/v1/admin/run/weekly")
    monthly = test_client.post("/api/v1/admin/run/monthly", params={"force": "true"})

    assert reminder.json() == {"job": "reminder", "sent": False, "detail": None}
    assert weekly.json() == {"job": "weekly", "sent": False, "detail": "nothing to review"}
    assert monthly.json() == {"job": "monthly", "sent": False, "detail": "nothing to review"}


def test_webhook_unavailable_without_bot(test_client: TestClient) -> None:
    payload = {"update_id": 1, "message": {"message_id": 1, "text": "hi", "chat": {"id": 1}}}

    assert test_client.post("/api/v1/webhook", json=payload).status_code == 503
    assert test_client.post("/webhook", json=payload).status_code == 503
