from datetime import datetime, timedelta, timezone

from sqlalchemy import update
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from shifted_app.core.config import settings
from shifted_app.db.base import async_session
from shifted_app.db.models import RecoveryBridge


def _store(client, access="AT", refresh="RT"):
    res = client.post("/recovery-bridge", json={"access_token": access, "refresh_token": refresh})
    assert res.status_code == 200
    return res.json()["rid"]


def test_tokens_retrievable_exactly_once(client):
    rid = _store(client)

    first = client.get("/recovery-bridge", params={"rid": rid})
    assert first.status_code == 200
    assert first.json() == {"access_token": "AT", "refresh_token": "RT"}

    second = client.get("/recovery-bridge", params={"rid": rid})
    assert second.status_code == 410
    assert second.json() == {"error": "already_used"}
    assert "access_token" not in second.text


def test_api_prefixed_paths(client):
    res = client.post("/api/recovery-bridge", json={"access_token": "a", "refresh_token": "r"})
    rid = res.json()["rid"]
    assert client.get(f"/api/recovery-bridge?rid={rid}").status_code == 200


def test_missing_tokens(client):
    res = client.post("/recovery-bridge", json={"access_token": "only"})
    assert res.status_code == 400
    assert res.json() == {"error": "missing_tokens"}

    res = client.post("/recovery-bridge", content=b"{", headers={"content-type": "application/json"})
    assert res.status_code == 400


def test_missing_rid(client):
    res = client.get("/recovery-bridge")
    assert res.status_code == 400
    assert res.json() == {"error": "missing_rid"}


def test_unknown_rid(client):
    res = client.get("/recovery-bridge", params={"rid": "does-not-exist"})
    assert res.status_code == 404
    assert res.json() == {"error": "not_found"}


def test_expired_reference_is_gone(client):
    rid = _store(client)

    async def _age():
        async with async_session() as s:
            old = datetime.now(timezone.utc) - timedelta(seconds=settings.recovery_bridge_ttl_seconds + 60)
            await s.execute(update(RecoveryBridge).where(RecoveryBridge.id == rid).values(created_at=old))
            await s.commit()

    client.portal.call(_age)

    res = client.get("/recovery-bridge", params={"rid": rid})
    assert res.status_code == 410
    assert res.json() == {"error": "expired"}


def test_missing_backend_config(bare_client):
    res = bare_client.post("/recovery-bridge", json={"access_token": "a", "refresh_token": "r"})
    assert res.status_code == 500
    assert res.json() == {"error": "missing_backend_config"}


def test_numeric_tokens_are_accepted_as_text(client):
    res = client.post("/recovery-bridge", json={"access_token": 123, "refresh_token": 456})
    assert res.status_code == 200

    tokens = client.get("/recovery-bridge", params={"rid": res.json()["rid"]})
    assert tokens.json() == {"access_token": "123", "refresh_token": "456"}


def test_reference_consumed_by_concurrent_request_is_gone(client, monkeypatch):
    rid = _store(client)
    original_execute = AsyncSession.execute

    async def racing_execute(self, statement, *args, **kwargs):
        if getattr(statement, "is_update", False):
            # another request marks it used after our select, before our update
            async with async_session() as other:
                await original_execute(
                    other,
                    update(RecoveryBridge)
                    .where(RecoveryBridge.id == rid)
                    .values(used_at=datetime.now(timezone.utc)),
                )
                await other.commit()
        return await original_execute(self, statement, *args, **kwargs)

    monkeypatch.setattr(AsyncSession, "execute", racing_execute)

    res = client.get("/recovery-bridge", params={"rid": rid})
    assert res.status_code == 410
    assert res.json() == {"error": "already_used"}


def test_tokens_returned_when_marking_used_fails(client, monkeypatch, caplog):
    rid = _store(client)
    original_execute = AsyncSession.execute

    async def failing_execute(self, statement, *args, **kwargs):
        if getattr(statement, "is_update", False):
            raise OperationalError("UPDATE recovery_bridge", {}, Exception("database is locked"))
        return await original_execute(self, statement, *args, **kwargs)

    monkeypatch.setattr(AsyncSession, "execute", failing_execute)

    res = client.get("/recovery-bridge", params={"rid": rid})
    assert res.status_code == 200
    assert res.json() == {"access_token": "AT", "refresh_token": "RT"}
    assert f"could not mark rid={rid} used" in caplog.text
