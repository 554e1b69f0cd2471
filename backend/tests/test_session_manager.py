import json
import threading
from unittest.mock import patch

import pytest

from conftest import PWD_CONTEXT, STACY_PASSWORD
from timetracker.services.session_manager import INVALID_CREDENTIALS, SessionManager
from timetracker.store.keyvalue import JsonFileKeyValueStore, MemoryKeyValueStore

SESSION_KEY = "test_session"


class TestSessionManager:
    @pytest.fixture
    def manager(self, store, kv_store):
        return SessionManager(store, kv_store, session_key=SESSION_KEY, pwd_context=PWD_CONTEXT)

    @pytest.mark.asyncio
    async def test_sign_in_persists_id_and_username_only(self, manager, kv_store):
        result = await manager.sign_in("stacy@example.com", STACY_PASSWORD)
        assert result.error is None
        assert result.data.id == "u-stacy"
        assert manager.current_user.username == "stacy@example.com"
        assert json.loads(kv_store.get(SESSION_KEY)) == {"id": "u-stacy", "username": "stacy@example.com"}

    @pytest.mark.asyncio
    async def test_wrong_password(self, manager, kv_store):
        result = await manager.sign_in("stacy@example.com", "wrong")
        assert result.error.message == INVALID_CREDENTIALS
        assert manager.current_user is None
        assert kv_store.get(SESSION_KEY) is None

    @pytest.mark.asyncio
    async def test_unknown_user(self, manager):
        result = await manager.sign_in("nobody@example.com", "whatever")
        assert result.error.message == INVALID_CREDENTIALS

    @pytest.mark.asyncio
    async def test_user_without_hash_cannot_sign_in(self, store, kv_store):
        await store.insert_rows("users", [{"id": "u-nohash", "username": "nohash@example.com"}])
        manager = SessionManager(store, kv_store, session_key=SESSION_KEY, pwd_context=PWD_CONTEXT)
        result = await manager.sign_in("nohash@example.com", "")
        assert result.error is not None

    @pytest.mark.asyncio
    async def test_restore_from_persisted_record(self, store, kv_store, manager):
        await manager.sign_in("stacy@example.com", STACY_PASSWORD)

        fresh = SessionManager(store, kv_store, session_key=SESSION_KEY, pwd_context=PWD_CONTEXT)
        user = await fresh.restore_session()
        assert user.id == "u-stacy"
        assert user.name == "Stacy"

    @pytest.mark.asyncio
    async def test_restore_for_deleted_user_clears_record(self, store, kv_store, manager):
        kv_store.set(SESSION_KEY, json.dumps({"id": "u-gone", "username": "gone@example.com"}))
        assert await manager.restore_session() is None
        assert kv_store.get(SESSION_KEY) is None

    @pytest.mark.asyncio
    async def test_restore_with_garbage_record(self, kv_store, manager):
        kv_store.set(SESSION_KEY, "{not json")
        assert await manager.restore_session() is None
        assert kv_store.get(SESSION_KEY) is None

    @pytest.mark.asyncio
    async def test_restore_without_record(self, manager, store):
        assert await manager.restore_session() is None
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_sign_out_clears_state(self, manager, kv_store):
        await manager.sign_in("stacy@example.com", STACY_PASSWORD)
        result = manager.sign_out()
        assert result.error is None
        assert manager.current_user is None
        assert kv_store.get(SESSION_KEY) is None

    @pytest.mark.asyncio
    async def test_sign_out_when_storage_fails(self, manager, kv_store):
        await manager.sign_in("stacy@example.com", STACY_PASSWORD)
        with patch.object(kv_store, "remove", side_effect=OSError("read-only")):
            result = manager.sign_out()
        assert result.error.message == "read-only"
        assert manager.current_user is None


    @pytest.mark.asyncio
    async def test_password_check_runs_off_the_event_loop(self, manager):
        loop_thread = threading.get_ident()
        checked_on = []

        def recording_verify(plain, hashed, context=None):
            checked_on.append(threading.get_ident())
            return True

        with patch("timetracker.services.session_manager.verify_password", side_effect=recording_verify):
            user = await manager.authenticate("stacy@example.com", "anything")

        assert user.id == "u-stacy"
        assert checked_on and checked_on[0] != loop_thread
        assert manager.current_user is None

    @pytest.mark.asyncio
    async def test_get_user(self, manager):
        assert (await manager.get_user("u-admin")).username == "admin@example.com"
        assert await manager.get_user("u-missing") is None


class TestJsonFileKeyValueStore:
    def test_round_trip_and_remove(self, tmp_path):
        path = tmp_path / "session.json"
        kv = JsonFileKeyValueStore(str(path))
        assert kv.get("k") is None
        kv.set("k", "v")
        assert JsonFileKeyValueStore(str(path)).get("k") == "v"
        kv.remove("k")
        assert kv.get("k") is None

    def test_invalid_file_is_ignored(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text("garbage", encoding="utf-8")
        kv = JsonFileKeyValueStore(str(path))
        assert kv.get("k") is None
        kv.set("k", "v")
        assert kv.get("k") == "v"

    def test_unreadable_file_is_ignored(self, tmp_path):
        # A directory in place of the file makes read_text raise OSError
        path = tmp_path / "session.json"
        path.mkdir()
        kv = JsonFileKeyValueStore(str(path))
        assert kv.get("k") is None

    @pytest.mark.asyncio
    async def test_unreadable_file_means_no_session(self, store, tmp_path):
        path = tmp_path / "session.json"
        path.mkdir()
        manager = SessionManager(store, JsonFileKeyValueStore(str(path)), session_key=SESSION_KEY, pwd_context=PWD_CONTEXT)
        assert await manager.restore_session() is None

    def test_memory_store_initial_values(self):
        kv = MemoryKeyValueStore({"a": "1"})
        assert kv.get("a") == "1"
        kv.remove("missing")
