"""Access to the persisted auth session."""

from scoutcrm.core.local_storage import LocalStore
from scoutcrm.db.store import StoreAuthError


def get_access_token(local_store: LocalStore, session_key: str) -> str:
    """
    Read the bearer token from the persisted session.

    The session is stored the way supabase-js persists it: a JSON object with
    an ``access_token`` field.

    Raises:
        StoreAuthError: If no session or token is stored
    """
    session = local_store.get(session_key)
    token = session.get("access_token") if isinstance(session, dict) else None
    if not token:
        raise StoreAuthError("No auth token - please sign in again")
    return token


def save_session(local_store: LocalStore, session_key: str, access_token: str, **extra) -> None:
    local_store.set(session_key, {"access_token": access_token, **extra})


def clear_session(local_store: LocalStore, session_key: str) -> None:
    local_store.remove(session_key)
