from __future__ import annotations

import asyncio
import json
from enum import Enum
from typing import Dict, Optional, Tuple

from storage import database
from utils.logger import get_logger

_logger = get_logger(__name__)

ACCESS_TOKEN_KEY = "accessToken"
REFRESH_TOKEN_KEY = "refreshToken"
PROFILE_KEY = "shirtshop_auth"


class Persistence(str, Enum):
    """Where a refresh token lives: in this process only, or on disk across restarts."""

    SESSION = "session"
    DURABLE = "durable"


class TokenStore:
    """
    Process-wide credential storage with two tiers.

    The durable tier is mirrored into sqlite (db_path=None keeps it in memory);
    the session tier is a plain dict that dies with the process. Reads are
    synchronous against the in-memory mirror, so callers always see the latest
    write. The SessionManager is the only writer.
    """

    def __init__(self, db_path: Optional[str] = None) -> None:
        self.db_path = db_path
        self._durable: Dict[str, str] = {}
        self._session: Dict[str, str] = {}
        self._write_lock = asyncio.Lock()
        self._loaded = False

    async def open(self) -> None:
        """Load the durable tier from disk. Safe to call more than once."""
        if self._loaded:
            return
        if self.db_path:
            self._durable = await database.read_all(self.db_path)
            _logger.debug(f"Loaded {len(self._durable)} durable key(s)")
        self._loaded = True

    async def _persist(self, key: str, value: Optional[str]) -> None:
        if not self.db_path:
            return
        async with self._write_lock:
            if value is None:
                await database.delete(self.db_path, key)
            else:
                await database.write(self.db_path, key, value)

    # ---------------------------
    # Access token
    # ---------------------------

    @property
    def access_token(self) -> Optional[str]:
        return self._session.get(ACCESS_TOKEN_KEY) or self._durable.get(ACCESS_TOKEN_KEY)

    async def set_access_token(self, token: str) -> None:
        self._durable[ACCESS_TOKEN_KEY] = token
        await self._persist(ACCESS_TOKEN_KEY, token)

    # ---------------------------
    # Refresh token
    # ---------------------------

    def refresh_token(self) -> Tuple[Optional[str], Optional[Persistence]]:
        """(token, tier holding it); durable wins when both are set."""
        token = self._durable.get(REFRESH_TOKEN_KEY)
        if token:
            return token, Persistence.DURABLE
        token = self._session.get(REFRESH_TOKEN_KEY)
        if token:
            return token, Persistence.SESSION
        return None, None

    async def set_refresh_token(self, token: Optional[str], persistence: Persistence) -> None:
        """Replace any prior refresh token in either tier, then store in the given one."""
        self._session.pop(REFRESH_TOKEN_KEY, None)
        had_durable = self._durable.pop(REFRESH_TOKEN_KEY, None) is not None
        if token and persistence is Persistence.DURABLE:
            self._durable[REFRESH_TOKEN_KEY] = token
            await self._persist(REFRESH_TOKEN_KEY, token)
            return
        if had_durable:
            await self._persist(REFRESH_TOKEN_KEY, None)
        if token:
            self._session[REFRESH_TOKEN_KEY] = token

    # ---------------------------
    # Cached profile (display only)
    # ---------------------------

    def cached_profile(self) -> Optional[dict]:
        raw = self._durable.get(PROFILE_KEY)
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            return None
        return data if isinstance(data, dict) else None

    async def set_cached_profile(self, profile: Optional[dict]) -> None:
        if profile is None:
            self._durable.pop(PROFILE_KEY, None)
            await self._persist(PROFILE_KEY, None)
            return
        raw = json.dumps(profile, default=str)
        self._durable[PROFILE_KEY] = raw
        await self._persist(PROFILE_KEY, raw)

    # ---------------------------
    # Clear
    # ---------------------------

    async def clear(self) -> None:
        """Remove every key from both tiers. Idempotent."""
        self._session.clear()
        self._durable.clear()
        if self.db_path:
            async with self._write_lock:
                await database.delete(
                    self.db_path, ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, PROFILE_KEY
                )

    def keys(self) -> Dict[str, Tuple[str, ...]]:
        """Present keys per tier."""
        return {
            Persistence.DURABLE.value: tuple(sorted(self._durable)),
            Persistence.SESSION.value: tuple(sorted(self._session)),
        }
