from __future__ import annotations

from fastapi.testclient import TestClient


def test_health_reports_dependency_checks(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    # Tests run without DATABASE_URL or REDIS_URL
    assert data["checks"] == {"database": "not_configured", "redis": "not_configured"}


def test_ready_without_database_is_ready(client: TestClient) -> None:
    assert client.get("/ready").status_code == 200


def test_health_degraded_when_redis_unreachable(client: TestClient, monkeypatch) -> None:
    from stockroom.api import health

    class _DeadRedis:
        async def ping(self) -> None:
            raise ConnectionError("redis down")

    monkeypatch.setattr(health, "redis_pool", _DeadRedis())
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "degraded"
    assert resp.json()["checks"]["redis"] == "degraded"
    # Redis does not gate readiness
    assert client.get("/ready").status_code == 200
