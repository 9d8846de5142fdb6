import os
import sqlite3
import tempfile
import unittest
from unittest import mock

from storage import database
from storage.tokens import (
    ACCESS_TOKEN_KEY,
    PROFILE_KEY,
    REFRESH_TOKEN_KEY,
    Persistence,
    TokenStore,
)


class TokenStoreTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.db_path = os.path.join(self.temp_dir.name, "nested", "client.sqlite")

    def tearDown(self):
        self.temp_dir.cleanup()

    async def test_durable_tier_survives_reload(self):
        store = TokenStore(self.db_path)
        await store.open()
        await store.set_access_token("acc")
        await store.set_refresh_token("ref", Persistence.DURABLE)
        await store.set_cached_profile({"id": "u1", "email": "a@b.co"})

        reopened = TokenStore(self.db_path)
        await reopened.open()
        self.assertEqual(reopened.access_token, "acc")
        self.assertEqual(reopened.refresh_token(), ("ref", Persistence.DURABLE))
        self.assertEqual(reopened.cached_profile()["email"], "a@b.co")

    async def test_session_tier_is_process_only(self):
        store = TokenStore(self.db_path)
        await store.open()
        await store.set_access_token("acc")
        await store.set_refresh_token("ref", Persistence.SESSION)
        self.assertEqual(store.refresh_token(), ("ref", Persistence.SESSION))
        self.assertEqual(store.keys()["session"], (REFRESH_TOKEN_KEY,))

        reopened = TokenStore(self.db_path)
        await reopened.open()
        self.assertEqual(reopened.access_token, "acc")
        self.assertEqual(reopened.refresh_token(), (None, None))

    async def test_new_refresh_token_replaces_other_tier(self):
        store = TokenStore(self.db_path)
        await store.open()
        await store.set_refresh_token("durable", Persistence.DURABLE)
        await store.set_refresh_token("session", Persistence.SESSION)

        self.assertEqual(store.refresh_token(), ("session", Persistence.SESSION))
        self.assertIsNone(await database.read(self.db_path, REFRESH_TOKEN_KEY))

        await store.set_refresh_token("durable-2", Persistence.DURABLE)
        self.assertEqual(store.refresh_token(), ("durable-2", Persistence.DURABLE))
        self.assertEqual(store.keys()["session"], ())

    async def test_clear_is_idempotent(self):
        store = TokenStore(self.db_path)
        await store.open()
        await store.set_access_token("acc")
        await store.set_refresh_token("ref", Persistence.DURABLE)
        await store.set_cached_profile({"id": "u1"})

        await store.clear()
        first = store.keys()
        await store.clear()
        self.assertEqual(store.keys(), first)
        self.assertEqual(first, {"durable": (), "session": ()})
        self.assertIsNone(store.access_token)
        self.assertIsNone(store.cached_profile())

        on_disk = await database.read_all(self.db_path)
        for key in (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, PROFILE_KEY):
            self.assertNotIn(key, on_disk)

    async def test_in_memory_store_and_bad_profile_json(self):
        store = TokenStore()
        await store.open()
        await store.set_access_token("acc")
        self.assertEqual(store.access_token, "acc")

        store._durable[PROFILE_KEY] = "{not json"
        self.assertIsNone(store.cached_profile())
        store._durable[PROFILE_KEY] = "[1, 2]"
        self.assertIsNone(store.cached_profile())

    async def test_connection_closed_when_schema_fails(self):
        conn = mock.MagicMock()
        conn.executescript = mock.AsyncMock(side_effect=sqlite3.OperationalError("disk I/O error"))
        conn.close = mock.AsyncMock()

        with mock.patch.object(database.aiosqlite, "connect", mock.AsyncMock(return_value=conn)):
            with self.assertRaises(sqlite3.OperationalError):
                await database.read_all(self.db_path)

        conn.close.assert_awaited_once()
        self.assertNotIn(self.db_path, database._initialized)


if __name__ == "__main__":
    unittest.main()
