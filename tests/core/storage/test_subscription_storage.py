from __future__ import annotations

from datetime import datetime, timezone

import pytest
import pytest_asyncio

from event_gateway.contracts.subscription import Filter, SubscriptionStatus
from event_gateway.core.db import create_engine, create_sessionmaker, init_db
from event_gateway.core.exceptions import SubscriptionNotFoundError
from event_gateway.core.storage.memory import MemorySubscriptionStorage
from event_gateway.core.storage.sql import SqlSubscriptionStorage
from tests.helpers.fakes import make_subscription


@pytest_asyncio.fixture(params=["memory", "sql"])
async def storage(request, tmp_path):
    if request.param == "memory":
        yield MemorySubscriptionStorage()
        return

    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'gateway.db'}")
    await init_db(engine)
    yield SqlSubscriptionStorage(create_sessionmaker(engine))
    await engine.dispose()


def event_type_filter(types: str) -> Filter:
    return Filter(type="event-type", config={"eventTypes": types})


@pytest.mark.asyncio
async def test_save_assigns_ids_and_dates(storage):
    saved = await storage.save(make_subscription(filters=[event_type_filter("a")]))

    assert saved.id is not None
    assert saved.filters[0].id is not None
    assert saved.created_date is not None
    assert saved.created_date.tzinfo is not None
    assert saved.modified_date is not None


@pytest.mark.asyncio
async def test_get_by_id_round_trips_fields(storage):
    saved = await storage.save(
        make_subscription(
            filters=[
                event_type_filter("a"),
                Filter(type="node-type", config={"nodeTypes": "cm:content"}),
            ]
        )
    )

    loaded = await storage.get_by_id(saved.id)

    assert loaded.type == "mqtt"
    assert loaded.user == "alice"
    assert loaded.status == SubscriptionStatus.ACTIVE
    assert loaded.config == {"broker-id": "main", "destination": "alice-events"}
    assert [f.type for f in loaded.filters] == ["event-type", "node-type"]
    assert loaded.filters[1].config == {"nodeTypes": "cm:content"}


@pytest.mark.asyncio
async def test_get_by_id_unknown(storage):
    with pytest.raises(SubscriptionNotFoundError):
        await storage.get_by_id("missing")


@pytest.mark.asyncio
async def test_update_keeps_id_and_replaces_filters(storage):
    saved = await storage.save(make_subscription(filters=[event_type_filter("a")]))
    kept_filter_id = saved.filters[0].id

    saved.status = SubscriptionStatus.INACTIVE
    saved.filters.append(Filter(type="node-type", config={"nodeTypes": "cm:folder"}))
    updated = await storage.save(saved)

    assert updated.id == saved.id
    assert updated.status == SubscriptionStatus.INACTIVE
    assert [f.id for f in updated.filters][0] == kept_filter_id
    assert len(updated.filters) == 2

    updated.filters = []
    cleared = await storage.save(updated)
    assert (await storage.get_by_id(cleared.id)).filters == []


@pytest.mark.asyncio
async def test_save_preserves_explicit_modified_date(storage):
    modified = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    subscription = make_subscription()
    subscription.modified_date = modified

    saved = await storage.save(subscription)

    assert (await storage.get_by_id(saved.id)).modified_date == modified


@pytest.mark.asyncio
async def test_finders(storage):
    alice_active = await storage.save(make_subscription(filters=[event_type_filter("a")]))
    alice_inactive = make_subscription()
    alice_inactive.status = SubscriptionStatus.INACTIVE
    alice_inactive = await storage.save(alice_inactive)
    bob_active = await storage.save(make_subscription(destination="bob-1", user="bob"))

    active = await storage.find_by_status(SubscriptionStatus.ACTIVE)
    assert {s.id for s in active} == {alice_active.id, bob_active.id}

    alice = await storage.find_by_user_and_status("alice", SubscriptionStatus.INACTIVE)
    assert [s.id for s in alice] == [alice_inactive.id]

    with_filter = await storage.find_by_user_and_filter_type("alice", "event-type")
    assert [s.id for s in with_filter] == [alice_active.id]
    assert await storage.find_by_user_and_filter_type("bob", "event-type") == []

    assert await storage.find_owners() == ["alice", "bob"]


@pytest.mark.asyncio
async def test_returned_subscription_is_detached(storage):
    saved = await storage.save(make_subscription())

    saved.status = SubscriptionStatus.INACTIVE

    assert (await storage.get_by_id(saved.id)).status == SubscriptionStatus.ACTIVE
