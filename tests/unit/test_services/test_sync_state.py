"""Tests for shared synchroniser building blocks."""

import asyncio
import pytest

from src.services.sync_state import KeyedMutex, SyncStatus, failure, remove_by_id, replace_by_id, success
from src.services.synced_collection import changes_payload, normalize_changes
from src.models.property import Property
from src.utils.errors import ValidationError
from src.utils.ids import generate_local_id
from tests.utils.factories import create_property
from tests.utils.helpers import settle


@pytest.mark.unit
@pytest.mark.asyncio
async def test_keyed_mutex_serialises_same_key():
    mutex = KeyedMutex()
    order = []
    release = asyncio.Event()

    async def first():
        async with mutex.hold("p1"):
            order.append("first-start")
            await release.wait()
            order.append("first-end")

    async def second():
        async with mutex.hold("p1"):
            order.append("second")

    tasks = [asyncio.create_task(first()), asyncio.create_task(second())]
    await settle()
    assert order == ["first-start"]
    assert mutex.in_flight("p1")

    release.set()
    await asyncio.gather(*tasks)

    assert order == ["first-start", "first-end", "second"]
    assert len(mutex) == 0
    assert not mutex.in_flight("p1")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_keyed_mutex_releases_on_error():
    mutex = KeyedMutex()

    with pytest.raises(RuntimeError):
        async with mutex.hold("p1"):
            raise RuntimeError("boom")

    assert len(mutex) == 0


@pytest.mark.unit
def test_replace_and_remove_by_id():
    a = create_property()
    b = create_property()
    b2 = b.model_copy(update={"title": "Renamed"})
    c = create_property()

    assert replace_by_id([a, b], b2) == [a, b2]
    assert replace_by_id([a, b], c) == [a, b, c]
    assert remove_by_id([a, b], a.id) == [b]


@pytest.mark.unit
def test_notifications():
    assert success("Saved").title == "Success"
    assert not success("Saved").is_failure
    assert failure("Nope").is_failure


@pytest.mark.unit
def test_ready_states():
    assert SyncStatus.READY_REMOTE_FALLBACK.is_ready
    assert not SyncStatus.LOADING.is_ready


@pytest.mark.unit
def test_normalize_changes():
    changes = normalize_changes(Property, {"petsAllowed": True, "title": "Loft", "id": "ignored"})

    assert changes == {"pets_allowed": True, "title": "Loft"}
    assert changes_payload(Property, changes) == {"petsAllowed": True, "title": "Loft"}

    with pytest.raises(ValidationError):
        normalize_changes(Property, {})


@pytest.mark.unit
def test_generate_local_id_avoids_existing():
    existing = [generate_local_id("prop") for _ in range(50)]
    fresh = generate_local_id("prop", existing)

    assert fresh.startswith("prop_")
    assert fresh not in existing
