from __future__ import annotations

import threading
from typing import Optional
from urllib.parse import urlparse, urlunparse

from careerboard.config import get_settings, reset_settings_cache
from careerboard.logging import get_logger
from careerboard.service.auth import AuthService
from careerboard.service.jobs import JobService
from careerboard.service.tokens import SessionTokenSigner
from careerboard.storage.memory import MemoryStore
from careerboard.storage.postgres import PostgresStore

logger = get_logger(__name__)


def _mask_url_password(url: Optional[str]) -> Optional[str]:
    """Replace the password in a connection URL with ``***`` for logging."""
    if not url:
        return url
    parsed = urlparse(url)
    if not parsed.password:
        return url
    netloc = parsed.hostname or ""
    if parsed.port:
        netloc = f"{netloc}:{parsed.port}"
    netloc = f"{parsed.username or ''}:***@{netloc}"
    return urlunparse(parsed._replace(netloc=netloc))


class Runtime:
    """Holds the store and the services shared by every request."""

    def __init__(self):
        self.settings = get_settings()
        self.settings.check_secret()
        logger.info(
            "runtime_init_started",
            app_env=self.settings.app_env.value,
            use_memory_store=self.settings.use_memory_store,
        )

        store_type = "memory" if self.settings.use_memory_store else "postgres"
        try:
            self.store = (
                MemoryStore(fs_root=self.settings.state_dir)
                if self.settings.use_memory_store
                else PostgresStore(self.settings.database_url)
            )
        except Exception as exc:
            logger.error(
                "runtime_store_init_failed",
                store_type=store_type,
                database_url=_mask_url_password(self.settings.database_url),
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise
        logger.info("runtime_store_initialized", store_type=store_type)

        self.signer = SessionTokenSigner(self.settings.session_secret)
        self.auth = AuthService(self.store, self.signer, self.settings)
        self.jobs = JobService(self.store)

    def close(self) -> None:
        close = getattr(self.store, "close", None)
        if callable(close):
            close()


runtime: Runtime | None = None
_runtime_lock = threading.Lock()


def get_runtime() -> Runtime:
    """Get or create the Runtime singleton.

    Double-checked locking: the unlocked read is the fast path once the
    runtime exists; the locked re-check stops two threads building it.
    """
    global runtime
    if runtime is not None:
        return runtime
    with _runtime_lock:
        if runtime is None:
            runtime = Runtime()
        return runtime


def reset_runtime_for_tests() -> Runtime:
    """Rebuild the runtime from the current environment for isolated tests."""
    global runtime
    with _runtime_lock:
        if runtime is not None:
            runtime.close()
        reset_settings_cache()
        runtime = Runtime()
        return runtime
