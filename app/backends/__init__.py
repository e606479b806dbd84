"""Store backend selection and access."""
import logging
from typing import Optional

from flask import Flask, current_app, has_app_context

from app.backends.base import StoreBackend

logger = logging.getLogger(__name__)

_backend: Optional[StoreBackend] = None


def build_backend(app: Flask) -> StoreBackend:
    """Build the backend named by STORE_BACKEND."""
    kind = app.config.get('STORE_BACKEND', 'supabase')

    if kind == 'supabase':
        from app.backends.supabase_backend import SupabaseBackend
        return SupabaseBackend(
            base_url=app.config['SUPABASE_URL'],
            api_key=app.config.get('SUPABASE_KEY'),
            timeout=app.config.get('BACKEND_TIMEOUT', 10),
        )

    if kind == 'sql':
        from app.backends.sql_backend import SqlBackend
        from app.database import get_session
        return SqlBackend(get_session)

    raise ValueError(f"Unknown STORE_BACKEND '{kind}'")


def init_backend(app: Flask, backend: Optional[StoreBackend] = None) -> StoreBackend:
    """Initialize backend singleton."""
    global _backend
    _backend = backend or build_backend(app)
    if not hasattr(app, 'extensions'):
        app.extensions = {}
    app.extensions['store_backend'] = _backend
    logger.info(f"[BACKEND] Using '{_backend.name}' store backend")
    return _backend


def get_backend() -> StoreBackend:
    """Get backend instance for the current app."""
    backend = current_app.extensions.get('store_backend') if has_app_context() else _backend
    if backend is None:
        raise RuntimeError("Store backend not initialized.")
    return backend
