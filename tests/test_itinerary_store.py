import asyncio
import uuid

import pytest

from app.core.exceptions import StorageError
from app.schemas.itinerary import Itinerary
from app.services.itinerary_store import InMemoryItineraryStore

USER = uuid.uuid4()


def make_itinerary(**overrides):
    values = dict(
        name="Douala → Yaoundé",
        user_id=USER,
        origin_location="Douala",
        destination_location="Yaoundé",
    )
    values.update(overrides)
    return Itinerary(**values)


def test_insert_assigns_id_and_timestamps():
    store = InMemoryItineraryStore()
    saved = asyncio.run(store.save(make_itinerary()))
    assert saved.id is not None
    assert saved.created_at is not None
    assert saved.created_at == saved.updated_at


def test_update_keeps_created_at():
    async def scenario():
        store = InMemoryItineraryStore()
        first = await store.save(make_itinerary())
        await asyncio.sleep(0.001)
        # even a caller-supplied created_at is ignored on update
        second = await store.save(first.model_copy(update={"name": "Renamed", "created_at": None}))
        return first, second

    first, second = asyncio.run(scenario())
    assert second.id == first.id
    assert second.name == "Renamed"
    assert second.created_at == first.created_at
    assert second.updated_at > first.updated_at


def test_update_of_unknown_id_fails():
    store = InMemoryItineraryStore()
    with pytest.raises(StorageError):
        asyncio.run(store.save(make_itinerary(id=uuid.uuid4())))


def test_list_get_delete():
    async def scenario():
        store = InMemoryItineraryStore()
        a = await store.save(make_itinerary(name="a"))
        await store.save(make_itinerary(name="b", user_id=uuid.uuid4()))
        mine = await store.list_for_user(USER)
        got = await store.get(a.id)
        deleted = await store.delete(a.id)
        again = await store.delete(a.id)
        missing = await store.get(a.id)
        return mine, got, deleted, again, missing, a

    mine, got, deleted, again, missing, a = asyncio.run(scenario())
    assert [i.name for i in mine] == ["a"]
    assert got == a
    assert deleted is True and again is False
    assert missing is None


def test_returned_values_are_copies():
    async def scenario():
        store = InMemoryItineraryStore()
        saved = await store.save(make_itinerary())
        saved.name = "mutated"
        return await store.get(saved.id)

    assert asyncio.run(scenario()).name == "Douala → Yaoundé"
