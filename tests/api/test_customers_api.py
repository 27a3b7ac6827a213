"""HTTP tests for /customers.

Tests:
  - Create returns a Stripe-style customer object; duplicates are 409
  - Malformed bodies use the VALIDATION_ERROR envelope
  - Lookups by id and email; soft delete hides the customer
  - Listing paginates with starting_after
  - /customers/active and its sender_email filter
  - Another tenant cannot see the customer
"""

from __future__ import annotations

CUSTOMERS = "/api/v1/customers"


async def _create(client, headers, handle: str, **extra) -> dict:
    response = await client.post(
        CUSTOMERS,
        json={"name": handle.capitalize(), "email": f"{handle}@acme.io", **extra},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestCreate:

    async def test_create_customer(self, client, auth_headers) -> None:
        body = await _create(client, auth_headers, "alice", metadata={"plan": "pro"})
        assert body["object"] == "customer"
        assert body["id"]
        assert body["email"] == "alice@acme.io"
        assert body["metadata"] == {"plan": "pro"}
        assert isinstance(body["created"], int)
        assert body["livemode"] is False

    async def test_duplicate_email_is_conflict(self, client, auth_headers) -> None:
        await _create(client, auth_headers, "alice")
        response = await client.post(
            CUSTOMERS, json={"name": "Other", "email": "alice@acme.io"}, headers=auth_headers
        )
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "CONFLICT"

    async def test_same_email_in_another_tenant(self, client, auth_headers, other_auth_headers) -> None:
        await _create(client, auth_headers, "alice")
        await _create(client, other_auth_headers, "alice")

    async def test_mixed_case_email_is_stored_as_sent(self, client, auth_headers) -> None:
        response = await client.post(
            CUSTOMERS, json={"name": "Bob", "email": "Bob@ACME.io"}, headers=auth_headers
        )
        assert response.status_code == 201
        created = response.json()
        assert created["email"] == "Bob@ACME.io"

        fetched = await client.get(f"{CUSTOMERS}/email/Bob@ACME.io", headers=auth_headers)
        assert fetched.status_code == 200
        assert fetched.json()["id"] == created["id"]

        # comparison is case-sensitive, so a differently cased address is a new customer
        other = await client.post(
            CUSTOMERS, json={"name": "Bob", "email": "Bob@acme.io"}, headers=auth_headers
        )
        assert other.status_code == 201
        assert other.json()["id"] != created["id"]

    async def test_mixed_case_emails_in_message_routes(self, client, auth_headers) -> None:
        for name, email in [("Ann", "Ann@Acme.IO"), ("Ben", "Ben@Acme.IO")]:
            response = await client.post(
                CUSTOMERS, json={"name": name, "email": email}, headers=auth_headers
            )
            assert response.status_code == 201

        sent = await client.post(
            "/api/v1/messages/send-to-customer",
            json={"sender_email": "Ann@Acme.IO", "recipient_email": "Ben@Acme.IO", "content": "hi"},
            headers=auth_headers,
        )
        assert sent.status_code == 201

        between = await client.get(
            "/api/v1/messages/between/Ann@Acme.IO/Ben@Acme.IO", headers=auth_headers
        )
        assert [m["content"] for m in between.json()["data"]] == ["hi"]

        conversations = await client.get(
            "/api/v1/channels/conversations/Ann@Acme.IO", headers=auth_headers
        )
        assert conversations.json()["total_count"] == 1

        active = await client.get(
            f"{CUSTOMERS}/active", params={"sender_email": "Ben@Acme.IO"}, headers=auth_headers
        )
        assert [c["email"] for c in active.json()["data"]] == ["Ann@Acme.IO"]

    async def test_invalid_email(self, client, auth_headers) -> None:
        response = await client.post(
            CUSTOMERS, json={"name": "Alice", "email": "not-an-email"}, headers=auth_headers
        )
        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert "email" in error["errors"]


class TestLookup:

    async def test_get_by_id_and_email(self, client, auth_headers) -> None:
        created = await _create(client, auth_headers, "alice")

        by_id = await client.get(f"{CUSTOMERS}/{created['id']}", headers=auth_headers)
        by_email = await client.get(f"{CUSTOMERS}/email/alice@acme.io", headers=auth_headers)

        assert by_id.json() == created
        assert by_email.json() == created

    async def test_unknown_id(self, client, auth_headers) -> None:
        response = await client.get(f"{CUSTOMERS}/missing", headers=auth_headers)
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    async def test_other_tenant_gets_not_found(self, client, auth_headers, other_auth_headers) -> None:
        created = await _create(client, auth_headers, "alice")
        response = await client.get(f"{CUSTOMERS}/{created['id']}", headers=other_auth_headers)
        assert response.status_code == 404

    async def test_delete(self, client, auth_headers) -> None:
        created = await _create(client, auth_headers, "alice")

        response = await client.delete(f"{CUSTOMERS}/{created['id']}", headers=auth_headers)
        assert response.json() == {"object": "customer", "id": created["id"], "deleted": True}

        assert (await client.get(f"{CUSTOMERS}/{created['id']}", headers=auth_headers)).status_code == 404
        assert (await client.delete(f"{CUSTOMERS}/{created['id']}", headers=auth_headers)).status_code == 404
        listing = await client.get(CUSTOMERS, headers=auth_headers)
        assert listing.json()["total_count"] == 0


class TestListing:

    async def test_pagination(self, client, auth_headers) -> None:
        created = [await _create(client, auth_headers, f"user{i}") for i in range(5)]
        newest_first = [c["id"] for c in reversed(created)]

        first = (await client.get(CUSTOMERS, params={"limit": 2}, headers=auth_headers)).json()
        assert [c["id"] for c in first["data"]] == newest_first[:2]
        assert first["has_more"] is True
        assert first["total_count"] == 5

        rest = (
            await client.get(
                CUSTOMERS,
                params={"limit": 10, "starting_after": first["data"][-1]["id"]},
                headers=auth_headers,
            )
        ).json()
        assert [c["id"] for c in rest["data"]] == newest_first[2:]
        assert rest["has_more"] is False

    async def test_limit_is_bounded(self, client, auth_headers) -> None:
        response = await client.get(CUSTOMERS, params={"limit": 0}, headers=auth_headers)
        assert response.status_code == 422
        response = await client.get(CUSTOMERS, params={"limit": 101}, headers=auth_headers)
        assert response.status_code == 422

    async def test_active_customers(self, client, auth_headers) -> None:
        alice = await _create(client, auth_headers, "alice")
        bob = await _create(client, auth_headers, "bob")
        carol = await _create(client, auth_headers, "carol")
        for sender, recipient in [("alice", "bob"), ("carol", "bob")]:
            response = await client.post(
                "/api/v1/messages/send-to-customer",
                json={
                    "sender_email": f"{sender}@acme.io",
                    "recipient_email": f"{recipient}@acme.io",
                    "content": "hi",
                },
                headers=auth_headers,
            )
            assert response.status_code == 201

        active = (await client.get(f"{CUSTOMERS}/active", headers=auth_headers)).json()
        assert {c["id"] for c in active["data"]} == {alice["id"], carol["id"]}
        assert all(isinstance(c["latest_message_at"], int) for c in active["data"])

        for_bob = (
            await client.get(
                f"{CUSTOMERS}/active", params={"sender_email": "bob@acme.io"}, headers=auth_headers
            )
        ).json()
        assert {c["id"] for c in for_bob["data"]} == {alice["id"], carol["id"]}
        assert bob["id"] not in {c["id"] for c in for_bob["data"]}

        unknown = (
            await client.get(
                f"{CUSTOMERS}/active", params={"sender_email": "ghost@acme.io"}, headers=auth_headers
            )
        ).json()
        assert unknown["data"] == []
