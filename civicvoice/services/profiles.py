# File: civicvoice/services/profiles.py
"""
Profile lookups, cached per user. Entries expire after
``PROFILE_CACHE_TTL_S`` seconds and the least recently used entry is dropped
once ``PROFILE_CACHE_MAX`` users are held. Signing out or editing the profile
drops the user's entry; a request that has the user row at hand refreshes a
stale entry through ``get_for``.
"""

import threading
import time
from collections import OrderedDict
from typing import Callable, Optional, Tuple

from sqlalchemy.orm import Session

from civicvoice.core.config import settings
from civicvoice.core.errors import NotFound
from civicvoice.models.user import User


def profile_of(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role.value,
        "is_active": user.is_active,
    }


class ProfileCache:

    def __init__(self, ttl_s: Optional[float] = None, max_entries: Optional[int] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.ttl_s = settings.profile_cache_ttl_s if ttl_s is None else ttl_s
        self.max_entries = settings.profile_cache_max if max_entries is None else max_entries
        self._clock = clock
        self._entries: "OrderedDict[int, Tuple[float, dict]]" = OrderedDict()
        self._lock = threading.Lock()

    def _lookup(self, user_id: int) -> Optional[dict]:
        entry = self._entries.get(user_id)
        if entry is None:
            return None
        stored_at, profile = entry
        if self._clock() - stored_at >= self.ttl_s:
            del self._entries[user_id]
            return None
        self._entries.move_to_end(user_id)
        return profile

    def _store(self, user_id: int, profile: dict) -> None:
        self._entries[user_id] = (self._clock(), profile)
        self._entries.move_to_end(user_id)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def get(self, db: Session, user_id: int) -> dict:
        with self._lock:
            cached = self._lookup(user_id)
        if cached is not None:
            return cached
        user = db.get(User, user_id)
        if not user:
            raise NotFound("User not found")
        return self.get_for(user)

    def get_for(self, user: User) -> dict:
        """Profile for an already loaded user row; a cached copy that disagrees is replaced."""
        fresh = profile_of(user)
        with self._lock:
            if self._lookup(user.id) != fresh:
                self._store(user.id, fresh)
        return fresh

    def peek(self, user_id: int) -> Optional[dict]:
        with self._lock:
            return self._lookup(user_id)

    def invalidate(self, user_id: int) -> None:
        with self._lock:
            self._entries.pop(user_id, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


profiles = ProfileCache()
