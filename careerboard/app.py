from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, Dict

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from careerboard.api.error_handling import register_exception_handlers
from careerboard.api.routes import router
from careerboard.config import Settings
from careerboard.logging import get_logger, set_correlation_id

logger = get_logger(__name__)

_settings = Settings.from_env()

__version__ = "0.1.0"

HEALTH_CHECK_TIMEOUT_SECONDS = 3


def _run_seeds(runtime) -> None:
    from careerboard.service.seed import seed_admin, seed_jobs

    if runtime.settings.admin_password:
        status = seed_admin(runtime.store, runtime.settings)
        logger.info("startup_admin_seed", status=status)
    else:
        logger.warning(
            "startup_admin_seed_skipped",
            message="ADMIN_PASSWORD is not set; no admin account was seeded",
        )
    seed_jobs(runtime.store)


@asynccontextmanager
async def lifespan(app: FastAPI):
    from careerboard.service.runtime import get_runtime

    runtime = get_runtime()
    if runtime.settings.seed_on_startup:
        try:
            await asyncio.to_thread(_run_seeds, runtime)
        except Exception as exc:
            logger.error("startup_seed_failed", error_type=type(exc).__name__, error=str(exc))

    yield

    try:
        runtime.close()
        logger.info("runtime_cleanup_complete")
    except Exception as exc:
        logger.error("shutdown_failed", error=str(exc))


app = FastAPI(title="Career Board", version=__version__, lifespan=lifespan)


app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_allow_origins,
    # the session cookie has to travel with cross-origin requests from the frontend
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-Request-ID"],
    expose_headers=["X-Request-ID"],
    max_age=3600,
)


@app.middleware("http")
async def add_correlation_id(request, call_next):
    """Tag the request with a correlation id and echo it as ``X-Request-ID``.

    A client-supplied ``X-Request-ID`` is reused; otherwise a UUID is minted.
    """
    correlation_id = set_correlation_id(request.headers.get("X-Request-ID"))
    response = await call_next(request)
    response.headers["X-Request-ID"] = correlation_id
    return response


@app.middleware("http")
async def add_security_headers(request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    if request.url.path.startswith("/api/"):
        response.headers.setdefault("Cache-Control", "no-store, private")
    if request.url.scheme == "https":
        response.headers.setdefault(
            "Strict-Transport-Security", "max-age=63072000; includeSubDomains"
        )
    return response


register_exception_handlers(app)
app.include_router(router)


@app.get("/healthz")
async def health() -> JSONResponse:
    """Liveness plus a bounded store probe; 503 when the store is unreachable."""
    from careerboard.service.runtime import get_runtime

    runtime = get_runtime()
    checks: Dict[str, Any] = {}

    def _store_probe() -> None:
        runtime.store.count_jobs()

    try:
        await asyncio.wait_for(asyncio.to_thread(_store_probe), HEALTH_CHECK_TIMEOUT_SECONDS)
        checks["store"] = {"status": "ok"}
    except asyncio.TimeoutError:
        logger.error("health_check_timeout", component="store")
        checks["store"] = {"status": "error", "error": "timeout"}
    except Exception as exc:
        logger.error("health_check_store_failed", error=str(exc))
        checks["store"] = {"status": "error", "error": type(exc).__name__}

    healthy = all(check["status"] == "ok" for check in checks.values())
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "healthy" if healthy else "unhealthy",
            "version": __version__,
            "checks": checks,
        },
    )
