"""Integration tests for the customer directory.

Tests:
  - Registration validation (name, email) and per-tenant email uniqueness
  - Lookups are tenant-scoped: another tenant's customer is NotFound
  - Soft delete hides the customer but keeps the email reserved
  - list() pages newest-first through 25 customers
  - list_active / list_active_for_sender ordering and filtering
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from slime_talks.core.exceptions import ConflictError, NotFoundError, ValidationError
from slime_talks.services.customer_service import CustomerService
from slime_talks.services.message_service import MessageService


class TestCreate:

    async def test_create_assigns_external_id_and_metadata(self, customer_service, tenant) -> None:
        customer = await customer_service.create(
            tenant, "Alice", "alice@acme.io", {"plan": "pro"}
        )
        assert customer.uuid
        assert customer.tenant_id == tenant.id
        assert customer.metadata_ == {"plan": "pro"}
        assert customer.created_at.tzinfo is not None

    @pytest.mark.parametrize("name", ["", "   "])
    async def test_empty_name_is_rejected(self, customer_service, tenant, name) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await customer_service.create(tenant, name, "alice@acme.io")
        assert "name" in exc_info.value.errors

    @pytest.mark.parametrize("email", ["", "not-an-email", "alice@", "@acme.io"])
    async def test_malformed_email_is_rejected(self, customer_service, tenant, email) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await customer_service.create(tenant, "Alice", email)
        assert "email" in exc_info.value.errors

    async def test_duplicate_email_in_same_tenant_conflicts(self, customer_service, tenant) -> None:
        await customer_service.create(tenant, "Alice", "alice@acme.io")
        with pytest.raises(ConflictError):
            await customer_service.create(tenant, "Alice Again", "alice@acme.io")

    async def test_same_email_allowed_across_tenants(
        self, customer_service, tenant, other_tenant
    ) -> None:
        first = await customer_service.create(tenant, "Alice", "alice@acme.io")
        second = await customer_service.create(other_tenant, "Alice", "alice@acme.io")
        assert first.uuid != second.uuid

    async def test_email_comparison_is_case_sensitive(self, customer_service, tenant) -> None:
        await customer_service.create(tenant, "Alice", "alice@acme.io")
        upper = await customer_service.create(tenant, "Alice", "Alice@acme.io")
        assert upper.email == "Alice@acme.io"


class TestLookups:

    async def test_get_by_uuid_and_email(self, customer_service, tenant, make_customer) -> None:
        alice = await make_customer("alice")
        assert (await customer_service.get_by_uuid(tenant, alice.uuid)).id == alice.id
        assert (await customer_service.get_by_email(tenant, "alice@acme.io")).id == alice.id

    async def test_unknown_customer_is_not_found(self, customer_service, tenant) -> None:
        with pytest.raises(NotFoundError):
            await customer_service.get_by_uuid(tenant, "missing")
        with pytest.raises(NotFoundError):
            await customer_service.get_by_email(tenant, "nobody@acme.io")

    async def test_other_tenant_cannot_see_customer(
        self, customer_service, other_tenant, make_customer
    ) -> None:
        alice = await make_customer("alice")
        with pytest.raises(NotFoundError):
            await customer_service.get_by_uuid(other_tenant, alice.uuid)
        with pytest.raises(NotFoundError):
            await customer_service.get_by_email(other_tenant, alice.email)


class TestSoftDelete:

    async def test_deleted_customer_disappears(self, customer_service, tenant, make_customer) -> None:
        alice = await make_customer("alice")
        await make_customer("bob")

        await customer_service.delete(tenant, alice.uuid)

        assert alice.deleted_at is not None
        with pytest.raises(NotFoundError):
            await customer_service.get_by_uuid(tenant, alice.uuid)
        page = await customer_service.list(tenant)
        assert [c.email for c in page.data] == ["bob@acme.io"]
        assert page.total_count == 1

    async def test_deleted_email_stays_reserved(self, customer_service, tenant, make_customer) -> None:
        alice = await make_customer("alice")
        await customer_service.delete(tenant, alice.uuid)
        with pytest.raises(ConflictError):
            await customer_service.create(tenant, "Alice", "alice@acme.io")

    async def test_delete_other_tenants_customer_is_not_found(
        self, customer_service, other_tenant, make_customer
    ) -> None:
        alice = await make_customer("alice")
        with pytest.raises(NotFoundError):
            await customer_service.delete(other_tenant, alice.uuid)
        assert alice.deleted_at is None


class TestList:

    async def test_pages_through_25_customers(self, customer_service, tenant, make_customer) -> None:
        created = [await make_customer(f"user{i:02d}") for i in range(25)]
        newest_first = [c.uuid for c in reversed(created)]

        first = await customer_service.list(tenant, limit=10)
        assert [c.uuid for c in first.data] == newest_first[:10]
        assert first.has_more is True
        assert first.total_count == 25

        second = await customer_service.list(tenant, limit=10, cursor=first.data[-1].uuid)
        assert [c.uuid for c in second.data] == newest_first[10:20]
        assert second.has_more is True
        assert second.total_count == 25

        third = await customer_service.list(tenant, limit=10, cursor=second.data[-1].uuid)
        assert [c.uuid for c in third.data] == newest_first[20:]
        assert third.has_more is False
        assert third.total_count == 25

    async def test_unknown_cursor_returns_first_page(self, customer_service, tenant, make_customer) -> None:
        for i in range(3):
            await make_customer(f"user{i}")
        page = await customer_service.list(tenant, limit=2, cursor="does-not-exist")
        assert [c.email for c in page.data] == ["user2@acme.io", "user1@acme.io"]
        assert page.has_more is True

    async def test_cursor_from_other_tenant_is_ignored(
        self, db, clock, tenant, other_tenant, make_customer
    ) -> None:
        mine = [await make_customer(f"user{i}") for i in range(2)]
        theirs = await make_customer("outsider", owner=other_tenant)
        page = await CustomerService(db, clock=clock).list(tenant, limit=10, cursor=theirs.uuid)
        assert [c.uuid for c in page.data] == [mine[1].uuid, mine[0].uuid]

    async def test_equal_timestamps_break_ties_by_insertion_order(self, db, tenant) -> None:
        instant = datetime(2025, 1, 1, tzinfo=timezone.utc)
        frozen = CustomerService(db, clock=lambda: instant)
        first = await frozen.create(tenant, "First", "first@acme.io")
        second = await frozen.create(tenant, "Second", "second@acme.io")
        page = await frozen.list(tenant, limit=1)
        assert page.data[0].uuid == second.uuid
        page = await frozen.list(tenant, limit=1, cursor=second.uuid)
        assert page.data[0].uuid == first.uuid
        assert page.has_more is False


class TestActive:

    async def test_active_customers_ordered_by_latest_sent_message(
        self, customer_service, channel_service, message_service, tenant, make_customer
    ) -> None:
        alice = await make_customer("alice")
        bob = await make_customer("bob")
        await make_customer("quiet")
        channel = await channel_service.create_general(tenant, [alice.uuid, bob.uuid])

        await message_service.send(tenant, channel.uuid, alice.uuid, "text", "hi bob")
        bob_msg = await message_service.send(tenant, channel.uuid, bob.uuid, "text", "hi alice")

        page = await customer_service.list_active(tenant)
        assert [item.customer.uuid for item in page.data] == [bob.uuid, alice.uuid]
        assert page.data[0].latest_message_at == bob_msg.created_at
        assert page.total_count == 2

        latest = await message_service.send(tenant, channel.uuid, alice.uuid, "text", "again")
        page = await customer_service.list_active(tenant)
        assert [item.customer.uuid for item in page.data] == [alice.uuid, bob.uuid]
        assert page.data[0].latest_message_at == latest.created_at

    async def test_active_customers_paginate(
        self, customer_service, channel_service, message_service, tenant, make_customer
    ) -> None:
        people = [await make_customer(f"user{i}") for i in range(3)]
        channel = await channel_service.create_custom(tenant, "room", [p.uuid for p in people])
        for person in people:
            await message_service.send(tenant, channel.uuid, person.uuid, "text", "hello")

        first = await customer_service.list_active(tenant, limit=2)
        assert [i.customer.uuid for i in first.data] == [people[2].uuid, people[1].uuid]
        assert first.has_more is True
        second = await customer_service.list_active(
            tenant, limit=2, cursor=first.data[-1].customer.uuid
        )
        assert [i.customer.uuid for i in second.data] == [people[0].uuid]
        assert second.has_more is False

    async def test_active_for_sender_requires_counterparty_messages(
        self, customer_service, channel_service, message_service, tenant, make_customer
    ) -> None:
        alice = await make_customer("alice")
        bob = await make_customer("bob")
        carol = await make_customer("carol")
        dave = await make_customer("dave")
        with_bob = await channel_service.create_general(tenant, [alice.uuid, bob.uuid])
        with_carol = await channel_service.create_general(tenant, [alice.uuid, carol.uuid])
        elsewhere = await channel_service.create_general(tenant, [bob.uuid, dave.uuid])

        await message_service.send(tenant, with_bob.uuid, bob.uuid, "text", "hey")
        last_between = await message_service.send(tenant, with_bob.uuid, alice.uuid, "text", "yo")
        # carol never answers, so she is not an active counterparty
        await message_service.send(tenant, with_carol.uuid, alice.uuid, "text", "ping")
        # newer activity outside the shared channels does not count
        await message_service.send(tenant, elsewhere.uuid, bob.uuid, "text", "other chat")

        page = await customer_service.list_active_for_sender(tenant, "alice@acme.io")
        assert [item.customer.uuid for item in page.data] == [bob.uuid]
        assert page.data[0].latest_message_at == last_between.created_at
        assert page.total_count == 1

    async def test_equal_activity_breaks_ties_by_insertion_order(
        self, db, customer_service, tenant, make_customer
    ) -> None:
        instant = datetime(2025, 1, 1, tzinfo=timezone.utc)
        frozen = MessageService(db, clock=lambda: instant)
        alice, bob, carol, dave = [
            await make_customer(handle) for handle in ("alice", "bob", "carol", "dave")
        ]
        room = await frozen.channel_service.create_custom(
            tenant, "room", [alice.uuid, bob.uuid, carol.uuid, dave.uuid]
        )
        for person in (bob, carol, dave):
            await frozen.send(tenant, room.uuid, person.uuid, "text", "hello")

        page = await customer_service.list_active(tenant, limit=1)
        assert page.data[0].customer.uuid == dave.uuid
        page = await customer_service.list_active(tenant, limit=1, cursor=dave.uuid)
        assert page.data[0].customer.uuid == carol.uuid
        page = await customer_service.list_active(tenant, limit=1, cursor=carol.uuid)
        assert page.data[0].customer.uuid == bob.uuid
        assert page.has_more is False

        page = await customer_service.list_active_for_sender(tenant, "alice@acme.io", limit=2)
        assert [i.customer.uuid for i in page.data] == [dave.uuid, carol.uuid]
        assert page.has_more is True
        page = await customer_service.list_active_for_sender(
            tenant, "alice@acme.io", limit=2, cursor=carol.uuid
        )
        assert [i.customer.uuid for i in page.data] == [bob.uuid]
        assert page.has_more is False

    async def test_active_for_unknown_sender_is_empty_page(self, customer_service, tenant) -> None:
        page = await customer_service.list_active_for_sender(tenant, "ghost@acme.io")
        assert page.data == []
        assert page.has_more is False
        assert page.total_count == 0

    async def test_limit_out_of_range_is_rejected(self, customer_service, tenant) -> None:
        with pytest.raises(ValidationError):
            await customer_service.list(tenant, limit=0)
        with pytest.raises(ValidationError):
            await customer_service.list(tenant, limit=101)
