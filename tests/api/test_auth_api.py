import json
from datetime import datetime, timedelta, timezone

import pytest
from svix.webhooks import Webhook

from scoutlete.config import settings
from scoutlete.routers.auth import COOKIE_KEY, create_access_token

WEBHOOK_SECRET = "whsec_MfKQ9r8GKYqrTwjUPD8ILPZIo2LaLaSw"


def _signed(event, msg_id="msg_1", sent_at=None, secret=WEBHOOK_SECRET):
    body = json.dumps(event)
    sent_at = sent_at or datetime.now(timezone.utc)
    headers = {
        "svix-id": msg_id,
        "svix-timestamp": str(int(sent_at.timestamp())),
        "svix-signature": Webhook(secret).sign(msg_id, sent_at, body),
        "content-type": "application/json",
    }
    return body, headers


@pytest.mark.asyncio
async def test_requests_without_token_are_unauthorized(api_client):
    assert (await api_client.get("/users/me")).status_code == 401
    assert (await api_client.get("/conversations")).status_code == 401
    response = await api_client.get("/users/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_sync_creates_user_and_sets_cookie(api_client):
    token = create_access_token({"sub": "idp_sync", "name": "Lena", "email": "lena@example.com"})

    response = await api_client.post("/auth/sync", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    body = response.json()
    assert body["external_id"] == "idp_sync"
    assert body["display_name"] == "Lena"
    assert COOKIE_KEY in response.cookies

    # the client keeps the cookie from the sync response
    me = await api_client.get("/users/me")
    assert me.status_code == 200
    assert me.json()["id"] == body["id"]


@pytest.mark.asyncio
async def test_token_for_unsynced_subject_is_unauthorized(api_client, auth_headers):
    response = await api_client.get("/users/me", headers=auth_headers("idp_never_synced"))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_user_deleted_webhook_deactivates(api_client, make_user, auth_headers, monkeypatch):
    monkeypatch.setattr(settings, "IDENTITY_WEBHOOK_SECRET", WEBHOOK_SECRET)
    user = await make_user(external_id="idp_leaving")
    user_id = user.id
    body, headers = _signed({"type": "user.deleted", "data": {"id": "idp_leaving"}})

    response = await api_client.post("/auth/webhooks/user-deleted", content=body, headers=headers)
    assert response.status_code == 200
    assert response.json() == {"ok": True, "handled": True, "user_id": user_id}

    assert (await api_client.get("/users/me", headers=auth_headers("idp_leaving"))).status_code == 401
    assert (await api_client.get(f"/users/{user_id}")).status_code == 404


@pytest.mark.asyncio
async def test_user_deleted_webhook_rejects_unsigned_and_tampered(api_client, make_user, monkeypatch):
    monkeypatch.setattr(settings, "IDENTITY_WEBHOOK_SECRET", WEBHOOK_SECRET)
    user = await make_user(external_id="idp_staying")
    event = {"type": "user.deleted", "data": {"id": "idp_staying"}}

    unsigned = await api_client.post("/auth/webhooks/user-deleted", json=event)
    assert unsigned.status_code == 401

    _, headers = _signed({"type": "user.deleted", "data": {"id": "idp_someone_else"}})
    tampered = await api_client.post("/auth/webhooks/user-deleted", content=json.dumps(event), headers=headers)
    assert tampered.status_code == 401

    other_key = "whsec_" + "QUJDREVGR0hJSktMTU5PUFFSU1RVVldYWVo="
    body, headers = _signed(event, secret=other_key)
    wrong_key = await api_client.post("/auth/webhooks/user-deleted", content=body, headers=headers)
    assert wrong_key.status_code == 401

    assert (await api_client.get(f"/users/{user.id}")).status_code == 200


@pytest.mark.asyncio
async def test_user_deleted_webhook_rejects_stale_replay(api_client, make_user, monkeypatch):
    monkeypatch.setattr(settings, "IDENTITY_WEBHOOK_SECRET", WEBHOOK_SECRET)
    user = await make_user(external_id="idp_replayed")
    body, headers = _signed(
        {"type": "user.deleted", "data": {"id": "idp_replayed"}},
        sent_at=datetime.now(timezone.utc) - timedelta(hours=1),
    )

    response = await api_client.post("/auth/webhooks/user-deleted", content=body, headers=headers)

    assert response.status_code == 401
    assert (await api_client.get(f"/users/{user.id}")).status_code == 200


@pytest.mark.asyncio
async def test_other_webhook_events_are_ignored(api_client, monkeypatch):
    monkeypatch.setattr(settings, "IDENTITY_WEBHOOK_SECRET", WEBHOOK_SECRET)
    body, headers = _signed({"type": "user.updated", "data": {"id": "idp_x"}})
    response = await api_client.post("/auth/webhooks/user-deleted", content=body, headers=headers)
    assert response.json() == {"ok": True, "handled": False}
