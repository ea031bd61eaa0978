"""
Service wiring. Everything is constructed explicitly from settings and
handed to its consumers; nothing here is a process-wide singleton.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .clients.supabase_auth import SupabaseAuthClient
from .clients.supabase_rest import SupabaseRestClient
from .config.settings import Settings
from .core.derivation import DerivationEngine
from .core.session_manager import SessionManager
from .llm.factory import create_llm_provider
from .services.auth_service import AuthService
from .storage.key_value import KeyValueStore
from .storage.local_store import LocalSessionStore
from .storage.persistence import SessionPersistence
from .storage.remote_store import RemoteSessionStore

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    auth: AuthService
    sessions: SessionManager

    def close(self) -> None:
        self.sessions.close()
        self.auth.close()


def build_container(settings: Settings) -> ServiceContainer:
    """Construct the auth adapter, stores, derivation engine and session manager."""
    kv_store = KeyValueStore(settings.local_storage_path)
    auth_client: Optional[SupabaseAuthClient] = None
    remote_store: Optional[RemoteSessionStore] = None

    if settings.supabase_configured:
        auth_client = SupabaseAuthClient(
            settings.supabase_url,
            settings.supabase_anon_key,
            timeout=settings.supabase_timeout,
            redirect_to=settings.auth_redirect_url,
            storage=kv_store,
            storage_key=settings.auth_session_key,
        )
        rest_client = SupabaseRestClient(
            settings.supabase_url,
            settings.supabase_anon_key,
            access_token=auth_client.get_access_token,
            timeout=settings.supabase_timeout,
        )
        remote_store = RemoteSessionStore(rest_client)
    else:
        logger.warning("Supabase is not configured; running with local sessions only")

    llm_provider = create_llm_provider(
        provider=settings.llm_provider,
        api_key=settings.llm_api_key,
        model=settings.llm_model,
        base_url=settings.llm_base_url,
        timeout=settings.llm_timeout,
    )
    if llm_provider is None:
        logger.warning("LLM_API_KEY not set; derived content will use fallbacks")

    local_store = LocalSessionStore(kv_store, key=settings.local_storage_key)
    auth = AuthService(auth_client)
    sessions = SessionManager(
        auth,
        SessionPersistence(local_store, remote_store),
        DerivationEngine(llm_provider),
        debounce_seconds=settings.session_debounce_seconds,
    )
    return ServiceContainer(settings=settings, auth=auth, sessions=sessions)
