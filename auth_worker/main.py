"""
Auth worker: admission-guarded front door for the email + one-time code issuer.
GET /authorize (guarded), GET / /login /register (landing), everything else to the issuer.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from auth_worker import config
from auth_worker.database import SessionLocal, init_db
from auth_worker.errors import MisroutedCallbackError
from auth_worker.guard import AdmissionGuardMiddleware
from auth_worker.identity import IdentityResolver
from auth_worker.issuer import Issuer, SuccessHook
from auth_worker.issuer import router as issuer_router
from auth_worker.keys import get_signing_key
from auth_worker.landing import LANDING_MODES
from auth_worker.landing import router as landing_router
from auth_worker.provider import CodeProvider, CodeSender, load_code_sender
from auth_worker.registry import RedirectRegistry, load_registry
from auth_worker.storage import DatabaseStorage, KeyValueStorage, MemoryStorage
from auth_worker.subjects import subjects
from auth_worker.theme import Theme
from auth_worker.well_known import router as well_known_router

logger = logging.getLogger(__name__)


def build_storage(backend: str) -> KeyValueStorage:
    if backend == "memory":
        return MemoryStorage()
    if backend == "database":
        return DatabaseStorage(SessionLocal)
    raise ValueError(f"Unknown storage backend: {backend!r}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, load signing key, drop expired storage entries on startup."""
    init_db()
    get_signing_key()
    storage = app.state.issuer.storage
    if isinstance(storage, DatabaseStorage):
        purged = storage.purge_expired()
        if purged:
            logger.info("Purged %d expired storage entries", purged)
    yield


def create_app(
    *,
    registry: RedirectRegistry | None = None,
    default_client_id: str | None = None,
    landing_mode: str | None = None,
    storage: KeyValueStorage | None = None,
    code_sender: CodeSender | None = None,
    success: SuccessHook | None = None,
    issuer: Issuer | None = None,
) -> FastAPI:
    """
    Build the app. Arguments default to config; pass issuer to swap the whole engine,
    or storage/code_sender/success to swap one collaborator of the built-in one.
    """
    registry = registry or load_registry()
    default_client_id = default_client_id or config.DEFAULT_CLIENT_ID
    landing_mode = landing_mode or config.LANDING_MODE
    if landing_mode not in LANDING_MODES:
        raise ValueError(f"Landing mode must be one of {LANDING_MODES}, got {landing_mode!r}")
    # Landing URLs must pass the guard, so the default client has to be registered
    if default_client_id not in registry:
        raise ValueError(f"Default client {default_client_id!r} is not in the redirect registry")

    if issuer is None:
        issuer = Issuer(
            storage=storage or build_storage(config.STORAGE_BACKEND),
            subjects=subjects,
            provider=CodeProvider(
                send_code=code_sender or load_code_sender(config.CODE_SENDER),
                length=config.LOGIN_CODE_LENGTH,
                ttl=config.LOGIN_CODE_TTL_SECONDS,
                max_attempts=config.LOGIN_MAX_ATTEMPTS,
            ),
            success=success or IdentityResolver(SessionLocal).resolve_identity,
            theme=Theme.from_config(),
        )

    app = FastAPI(title="Auth Worker", version="0.1.0", lifespan=lifespan)
    app.state.registry = registry
    app.state.default_client_id = default_client_id
    app.state.landing_mode = landing_mode
    app.state.issuer = issuer

    app.add_middleware(AdmissionGuardMiddleware, registry=registry)

    @app.exception_handler(MisroutedCallbackError)
    async def misrouted_callback(request: Request, exc: Exception):
        return PlainTextResponse(str(exc), status_code=400)

    @app.get("/health")
    def health():
        """Health check endpoint."""
        return {"status": "ok", "service": "auth_worker"}

    @app.get("/callback")
    def callback():
        """The client app's worker handles its own callback; reaching it here is a misconfiguration."""
        raise MisroutedCallbackError()

    app.include_router(landing_router, tags=["landing"])
    app.include_router(well_known_router, tags=["well-known"])
    app.include_router(issuer_router, tags=["issuer"])
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=config.LOG_LEVEL)
    uvicorn.run(
        "auth_worker.main:app",
        host="127.0.0.1",
        port=8787,
        reload=True,
    )
