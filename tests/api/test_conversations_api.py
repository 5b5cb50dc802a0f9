import pytest


@pytest.mark.asyncio
async def test_direct_conversation_round_trip(api_client, make_user, auth_headers):
    ada, bo = await make_user("Ada"), await make_user("Bo")
    ada_id, bo_id = ada.id, bo.id

    created = await api_client.post("/conversations/direct", json={"user_id": bo_id}, headers=auth_headers(ada))
    again = await api_client.post("/conversations/direct", json={"user_id": ada_id}, headers=auth_headers(bo))

    assert created.status_code == 201
    assert again.status_code == 200
    conversation = created.json()
    assert again.json()["id"] == conversation["id"]
    assert conversation["kind"] == "direct"
    assert {p["user"]["id"]: p["role"] for p in conversation["participants"]} == {ada_id: "admin", bo_id: "member"}

    cid = conversation["id"]
    posted = await api_client.post(f"/conversations/{cid}/messages", json={"content": "Track at 6?"}, headers=auth_headers(ada))
    assert posted.status_code == 201
    assert posted.json()["sender"]["display_name"] == "Ada"

    listed = await api_client.get(f"/conversations/{cid}/messages", headers=auth_headers(bo))
    assert [m["content"] for m in listed.json()] == ["Track at 6?"]

    inbox = (await api_client.get("/notifications", headers=auth_headers(bo))).json()
    assert inbox["unread_count"] == 2
    assert {n["type"] for n in inbox["notifications"]} == {"new_conversation", "new_message"}


@pytest.mark.asyncio
async def test_exclusive_direct_refuses_existing_pair(api_client, make_user, auth_headers):
    ada, bo = await make_user("Ada"), await make_user("Bo")
    ada_id, bo_id = ada.id, bo.id

    first = await api_client.post(
        "/conversations/direct", params={"exclusive": "true"}, json={"user_id": bo_id}, headers=auth_headers(ada),
    )
    second = await api_client.post(
        "/conversations/direct", params={"exclusive": "true"}, json={"user_id": ada_id}, headers=auth_headers(bo),
    )

    assert first.status_code == 201
    assert second.status_code == 409
    assert second.json()["detail"] == "conversation_exists"
    listed = await api_client.get("/conversations", headers=auth_headers(ada))
    assert [c["id"] for c in listed.json()] == [first.json()["id"]]


@pytest.mark.asyncio
async def test_error_mapping(api_client, make_user, auth_headers):
    ada, bo, cy = await make_user(), await make_user(), await make_user()
    bo_id = bo.id

    self_chat = await api_client.post("/conversations/direct", json={"user_id": ada.id}, headers=auth_headers(ada))
    assert self_chat.status_code == 400
    assert self_chat.json()["detail"] == "cannot_message_self"

    cid = (await api_client.post("/conversations/direct", json={"user_id": bo_id}, headers=auth_headers(ada))).json()["id"]

    blank = await api_client.post(f"/conversations/{cid}/messages", json={"content": "   "}, headers=auth_headers(ada))
    assert blank.status_code == 400

    outsider = await api_client.get(f"/conversations/{cid}/messages", headers=auth_headers(cy))
    assert outsider.status_code == 403

    missing = await api_client.get("/conversations/9999", headers=auth_headers(ada))
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_group_listing_and_message_delete(api_client, make_user, auth_headers):
    ada, bo, cy = await make_user(), await make_user(), await make_user()
    ids = [bo.id, cy.id]

    group = await api_client.post(
        "/conversations/group", json={"participant_ids": ids, "title": "Relay squad"}, headers=auth_headers(ada),
    )
    assert group.status_code == 201
    cid = group.json()["id"]

    listed = await api_client.get("/conversations", params={"type": "group"}, headers=auth_headers(cy))
    assert [c["id"] for c in listed.json()] == [cid]

    mid = (await api_client.post(f"/conversations/{cid}/messages", json={"content": "oops"}, headers=auth_headers(bo))).json()["id"]
    assert (await api_client.delete(f"/conversations/{cid}/messages/{mid}", headers=auth_headers(cy))).status_code == 403
    assert (await api_client.delete(f"/conversations/{cid}/messages/{mid}", headers=auth_headers(bo))).status_code == 200

    listed = await api_client.get(f"/conversations/{cid}/messages", headers=auth_headers(ada))
    assert listed.json() == []
