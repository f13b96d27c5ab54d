from conftest import ALICE, BOB, CAROL, DAVE, auth_headers


async def send(client, sender, recipient):
    return await client.post(
        "/friends/requests", json={"recipient_id": recipient}, headers=auth_headers(sender)
    )


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200


async def test_requests_need_a_session(client):
    response = await client.post("/friends/requests", json={"recipient_id": BOB})

    assert response.status_code == 401
    assert response.json() == {
        "ok": False,
        "error": "Unauthorized",
        "kind": "unauthenticated",
        "details": None,
    }


async def test_garbage_token_is_unauthenticated(client):
    response = await client.get("/friends", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


async def test_cookie_session_is_accepted(client):
    token = auth_headers(ALICE)["Authorization"].split(" ", 1)[1]
    client.cookies.set("access_token", token)
    response = await client.get("/friends")
    assert response.status_code == 200


async def test_missing_recipient_is_a_validation_error(client):
    response = await client.post("/friends/requests", json={}, headers=auth_headers(ALICE))

    assert response.status_code == 400
    assert response.json()["kind"] == "validation_failed"
    assert response.json()["error"] == "Recipient required."


async def test_self_request_is_rejected(client):
    response = await send(client, ALICE, ALICE)
    assert response.status_code == 400
    assert response.json()["error"] == "Cannot friend yourself."


async def test_send_accept_and_list(client):
    sent = await send(client, ALICE, BOB)
    assert sent.status_code == 200
    body = sent.json()
    assert body["success"] is True
    assert body["status"] == "pending"

    view = await client.get(f"/users/{ALICE}/relationship", headers=auth_headers(BOB))
    assert view.json()["status"] == "request_received"
    assert view.json()["incoming_request_id"] == body["request_id"]

    accepted = await send(client, BOB, ALICE)
    assert accepted.json() == {"success": True, "status": "accepted", "request_id": body["request_id"]}

    friends = await client.get("/friends", headers=auth_headers(ALICE))
    assert friends.json() == {
        "friends": [{"id": BOB, "display_name": "Bob", "email": "bob@example.com"}]
    }


async def test_mutations_carry_rate_limit_headers(client):
    response = await send(client, ALICE, BOB)

    assert response.headers["X-RateLimit-Limit"] == "30"
    assert response.headers["X-RateLimit-Remaining"] == "29"
    assert int(response.headers["X-RateLimit-Reset"]) > 0
    assert "Retry-After" not in response.headers


async def test_rate_limit_rejects_with_retry_after(client):
    for _ in range(30):
        ok = await client.post("/friends/requests/mark-seen", headers=auth_headers(ALICE))
        assert ok.status_code == 200

    denied = await client.post("/friends/requests/mark-seen", headers=auth_headers(ALICE))

    assert denied.status_code == 429
    assert int(denied.headers["Retry-After"]) >= 1
    assert denied.headers["X-RateLimit-Remaining"] == "0"
    assert denied.json()["detail"]["details"]["limit"] == 30

    # Another user has their own budget.
    other = await client.post("/friends/requests/mark-seen", headers=auth_headers(BOB))
    assert other.status_code == 200


async def test_pending_lists_and_counts(client):
    first = (await send(client, BOB, ALICE)).json()
    await send(client, CAROL, ALICE)
    await send(client, ALICE, DAVE)

    listing = await client.get("/friends/requests", headers=auth_headers(ALICE))
    body = listing.json()
    assert {r["requester"]["id"] for r in body["incoming"]} == {BOB, CAROL}
    assert [r["recipient"]["display_name"] for r in body["outgoing"]] == ["Dave"]
    assert first["request_id"] in {r["id"] for r in body["incoming"]}

    count = await client.get("/friends/requests/count", headers=auth_headers(ALICE))
    assert count.json() == {"pending_incoming_count": 2}

    seen = await client.post("/friends/requests/mark-seen", headers=auth_headers(ALICE))
    assert seen.json() == {"success": True, "updated": 2}


async def test_decline_flow(client):
    request_id = (await send(client, ALICE, BOB)).json()["request_id"]

    forbidden = await client.post(f"/friends/requests/{request_id}/decline", headers=auth_headers(ALICE))
    assert forbidden.status_code == 403
    assert forbidden.json()["kind"] == "forbidden"

    declined = await client.post(f"/friends/requests/{request_id}/decline", headers=auth_headers(BOB))
    assert declined.status_code == 200
    assert declined.json()["status"] == "declined"

    again = await client.post(f"/friends/requests/{request_id}/decline", headers=auth_headers(BOB))
    assert again.status_code == 409
    assert again.json()["error"] == "Cannot decline a declined request."


async def test_unknown_request_is_not_found(client):
    response = await client.delete("/friends/requests/nope", headers=auth_headers(ALICE))
    assert response.status_code == 404
    assert response.json()["kind"] == "not_found"


async def test_unfriend(client):
    request_id = (await send(client, ALICE, BOB)).json()["request_id"]
    await send(client, BOB, ALICE)

    outsider = await client.delete(f"/friends/requests/{request_id}", headers=auth_headers(CAROL))
    assert outsider.status_code == 403

    removed = await client.delete(f"/friends/requests/{request_id}", headers=auth_headers(BOB))
    assert removed.json() == {"success": True, "status": "accepted", "request_id": request_id}

    view = await client.get(f"/users/{BOB}/relationship", headers=auth_headers(ALICE))
    assert view.json()["status"] == "none"
    assert view.json()["friends"] is False


async def test_suggestions(client, make_friends):
    await make_friends(ALICE, BOB)
    await make_friends(BOB, CAROL)
    await make_friends(BOB, DAVE)
    await make_friends(CAROL, DAVE)

    response = await client.get("/friends/suggestions", headers=auth_headers(ALICE))

    assert response.json() == {
        "suggestions": [
            {"id": CAROL, "display_name": "Carol", "email": "carol@example.com", "mutual_count": 1},
            {"id": DAVE, "display_name": "Dave", "email": "dave@example.com", "mutual_count": 1},
        ]
    }
