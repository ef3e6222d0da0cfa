"""FastAPI application for the key store and generation gateway."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..config import Settings, get_settings
from ..gateway import ValidatedGenerationGateway
from ..hooks import HookManager, LoggingHook
from ..links import CapabilityLinkSigner
from ..logging import configure_logging
from ..models import CapabilityTable
from ..providers import OpenAIProvider
from ..store import KeyStore, build_store_backend
from . import askai, kvs
from .errors import install_error_handlers
from .schemas import HealthResponse


def create_app(
    settings: Settings | None = None,
    *,
    store: KeyStore | None = None,
    gateway: ValidatedGenerationGateway | None = None,
    signer: CapabilityLinkSigner | None = None,
) -> FastAPI:
    """
    Build the application.

    Components passed in are used as-is and left open on shutdown. Missing
    ones are built from ``settings`` in the lifespan and closed with it.
    """
    settings = settings or get_settings()
    logger = configure_logging(
        level=settings.logging.level,
        json_output=settings.logging.format == "json",
        log_file=settings.logging.log_file,
        redact_keys=settings.logging.redact_api_keys,
    )
    hooks = HookManager([LoggingHook(logger)])

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan manager for startup/shutdown events."""
        owned: list = []
        built: list[str] = []

        if app.state.store is None:
            app.state.store = KeyStore(
                build_store_backend(settings.store),
                settings.store,
                hooks=hooks,
                logger=logger,
            )
            await app.state.store.ensure_ready()
            owned.append(app.state.store)
            built.append("store")

        if app.state.gateway is None:
            capabilities = CapabilityTable.from_config(settings.models)
            provider = OpenAIProvider(settings.provider, capabilities=capabilities, logger=logger)
            app.state.gateway = ValidatedGenerationGateway(
                provider,
                capabilities=capabilities,
                config=settings.gateway,
                defaults=settings.provider,
                hooks=hooks,
                logger=logger,
            )
            owned.append(provider)
            built.append("gateway")

        if app.state.signer is None and settings.links.secret:
            app.state.signer = CapabilityLinkSigner.from_config(settings.links)
            built.append("signer")

        logger.info("Application started", store_backend=app.state.store.backend.name)
        try:
            yield
        finally:
            for component in reversed(owned):
                await component.close()
            # The next startup on this app builds fresh components
            for name in built:
                setattr(app.state, name, None)
            logger.info("Application stopped")

    app = FastAPI(
        title=settings.server.title,
        version=__version__,
        debug=settings.server.debug,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.gateway = gateway
    app.state.signer = signer

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.allowed_origins,
        allow_methods=["GET", "PUT", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )
    install_error_handlers(app)

    @app.get("/healthz", response_model=HealthResponse, tags=["Health"])
    async def healthz() -> HealthResponse:
        store_state = "ready" if app.state.store is not None else "not_initialized"
        return HealthResponse(status="ok", store=store_state, version=__version__)

    app.include_router(kvs.router, prefix=settings.server.kvs_prefix, tags=["Key Store"])
    app.include_router(askai.router, prefix=settings.server.askai_prefix, tags=["Generation"])
    return app


__all__ = ["create_app"]
