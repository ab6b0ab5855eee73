"""Tests for the supabase-py backed store (mocked client)."""

from unittest.mock import MagicMock, patch

import httpx
import pytest

from scoutcrm.core.local_storage import MemoryLocalStore
from scoutcrm.db.session import save_session
from scoutcrm.db.store import StoreAuthError, StoreRejectedError, StoreUnavailableError
from scoutcrm.db.supabase_client import SupabaseStore, _translate_error, create_supabase

SESSION_KEY = "scout_auth_session"


def _store(client: MagicMock, token: str | None = "token-abc") -> SupabaseStore:
    local_store = MemoryLocalStore()
    if token:
        save_session(local_store, SESSION_KEY, token)
    return SupabaseStore(client, local_store, SESSION_KEY)


class TestSupabaseStore:
    @pytest.mark.asyncio
    async def test_select_applies_filters_order_and_token(self):
        """Equality and in filters map to eq/in_, and the token is set per call."""
        client = MagicMock()
        query = client.table.return_value.select.return_value
        query.eq.return_value = query
        query.in_.return_value = query
        query.order.return_value = query
        query.execute.return_value = MagicMock(data=[{"id": "1"}])

        rows = await _store(client).select(
            "scout_prospects", {"scout_id": "s1", "id": ["1", "2"]}, order="created_at", desc=True
        )

        assert rows == [{"id": "1"}]
        client.postgrest.auth.assert_called_with("token-abc")
        client.table.assert_called_with("scout_prospects")
        query.eq.assert_called_with("scout_id", "s1")
        query.in_.assert_called_with("id", ["1", "2"])
        query.order.assert_called_with("created_at", desc=True)

    @pytest.mark.asyncio
    async def test_insert_returns_first_row(self):
        client = MagicMock()
        client.table.return_value.insert.return_value.execute.return_value = MagicMock(data=[{"id": "9"}])
        assert await _store(client).insert("scout_prospects", {"name": "A"}) == {"id": "9"}

    @pytest.mark.asyncio
    async def test_insert_without_data_is_rejected(self):
        client = MagicMock()
        client.table.return_value.insert.return_value.execute.return_value = MagicMock(data=[])
        with pytest.raises(StoreRejectedError):
            await _store(client).insert("scout_prospects", {"name": "A"})

    @pytest.mark.asyncio
    async def test_missing_token(self):
        """Without a session nothing reaches the client."""
        client = MagicMock()
        with pytest.raises(StoreAuthError):
            await _store(client, token=None).select("scout_prospects")
        client.table.assert_not_called()

    @pytest.mark.asyncio
    async def test_library_errors_are_translated(self):
        client = MagicMock()
        client.table.return_value.delete.return_value.eq.return_value.execute.side_effect = (
            httpx.ConnectError("refused")
        )
        with pytest.raises(StoreUnavailableError):
            await _store(client).delete("scout_prospects", {"id": "1"})


class TestTranslateError:
    def test_auth_codes(self):
        error = Exception("JWT expired")
        error.code = "PGRST301"
        assert isinstance(_translate_error(error), StoreAuthError)

    def test_other_errors_are_rejections(self):
        error = Exception("duplicate key")
        error.code = "23505"
        translated = _translate_error(error)
        assert isinstance(translated, StoreRejectedError)
        assert "duplicate key" in str(translated)

    def test_timeouts_are_unavailable(self):
        assert isinstance(_translate_error(httpx.ReadTimeout("slow")), StoreUnavailableError)


class TestCreateSupabase:
    def test_wraps_init_failure(self):
        settings = MagicMock(SUPABASE_URL="bad", SUPABASE_ANON_KEY="k", STORE_TIMEOUT_SECONDS=5.0)
        with patch("scoutcrm.db.supabase_client.create_client", side_effect=ValueError("bad url")):
            with pytest.raises(RuntimeError, match="Failed to initialize Supabase client"):
                create_supabase(settings)
