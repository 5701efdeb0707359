"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import threading

from fastapi import Depends, Request

from workbench.config import Settings, get_settings
from workbench.db import DbClient, InMemoryDbClient, PostgresDbClient
from workbench.session_context import SessionContext, load_session_context

IN_MEMORY = "memory://"

_db_clients: dict[str, DbClient] = {}
_db_clients_lock = threading.Lock()


def _store_url(settings: Settings) -> str:
    if settings.use_in_memory_backends or not settings.database_url:
        return IN_MEMORY
    return settings.database_url


def get_db_client(settings: Settings = Depends(get_settings)) -> DbClient:
    """
    Return one DB client per configured store so records persist across requests.

    ``create_app(settings)`` overrides ``get_settings``, so the store always
    follows the settings the app was built with.
    """
    url = _store_url(settings)
    with _db_clients_lock:
        client = _db_clients.get(url)
        if client is None:
            if url == IN_MEMORY:
                client = InMemoryDbClient()
            else:
                client = PostgresDbClient(url)
            _db_clients[url] = client
    return client


def get_session_context(
    request: Request, db: DbClient = Depends(get_db_client)
) -> SessionContext:
    """Resolve the signed-in user for this request with a fresh store read."""
    return load_session_context(db, request.session)
