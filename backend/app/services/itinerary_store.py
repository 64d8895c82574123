"""
Persistence collaborator for itineraries.

Contract: an Itinerary with no id is inserted, one with an id is updated.
The store assigns `id` and `created_at` on insert and refreshes `updated_at`
on every save. `created_at` is never touched again. Storage failures surface
as StorageError.

InMemoryItineraryStore backs the dev server and the tests. A database-backed
store only needs to honour the same four coroutines.
"""

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol
from uuid import UUID

from app.core.exceptions import StorageError
from app.schemas.itinerary import Itinerary


class ItineraryStore(Protocol):
    async def save(self, itinerary: Itinerary) -> Itinerary:
        ...

    async def get(self, itinerary_id: UUID) -> Optional[Itinerary]:
        ...

    async def list_for_user(self, user_id: UUID) -> List[Itinerary]:
        ...

    async def delete(self, itinerary_id: UUID) -> bool:
        ...


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryItineraryStore:
    def __init__(self):
        self._rows: Dict[UUID, Itinerary] = {}
        self._lock = asyncio.Lock()

    async def save(self, itinerary: Itinerary) -> Itinerary:
        async with self._lock:
            now = _now()
            if itinerary.is_new:
                stored = itinerary.model_copy(
                    update={"id": uuid.uuid4(), "created_at": now, "updated_at": now},
                    deep=True,
                )
            else:
                existing = self._rows.get(itinerary.id)
                if existing is None:
                    raise StorageError(f"Itinerary {itinerary.id} does not exist")
                stored = itinerary.model_copy(
                    update={"created_at": existing.created_at, "updated_at": now},
                    deep=True,
                )
            self._rows[stored.id] = stored
            return stored.model_copy(deep=True)

    async def get(self, itinerary_id: UUID) -> Optional[Itinerary]:
        row = self._rows.get(itinerary_id)
        return row.model_copy(deep=True) if row else None

    async def list_for_user(self, user_id: UUID) -> List[Itinerary]:
        rows = [r for r in self._rows.values() if r.user_id == user_id]
        rows.sort(key=lambda r: r.created_at)
        return [r.model_copy(deep=True) for r in rows]

    async def delete(self, itinerary_id: UUID) -> bool:
        async with self._lock:
            return self._rows.pop(itinerary_id, None) is not None
