from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from starlette.applications import Starlette
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Route

from masterlist.registration.diffs import parse_mod_info
from masterlist.registration.sanitizer import ProfanitySanitizer
from masterlist.registration.service import RegisterServerRequest, RegistrationService
from masterlist.registration.verification import VerificationClient
from masterlist.registry.liveness import LivenessMonitor
from masterlist.registry.store import RegistryStore
from masterlist.server.settings import MasterServerSettings
from shared.build_info import APP_VERSION, GIT_COMMIT
from shared.logging import setup_logging

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from starlette.requests import Request

    from masterlist.registration.diffs import ModInfoPayload

_MAX_MOD_INFO_SIZE = 1024 * 1024


class HeartbeatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    player_count: int = Field(alias="playerCount")


def _caller_ip(request: Request) -> str:
    """Source address of the connection. Never taken from anything the client sends."""
    return request.client.host if request.client is not None else ""


def _empty() -> JSONResponse:
    # Mutations answer identically whether they applied or were refused.
    return JSONResponse(None)


async def _read_mod_info(request: Request) -> ModInfoPayload | None:
    """Return the mod-info document uploaded as the first file of a multipart body, if any."""
    if not request.headers.get("content-type", "").startswith("multipart/form-data"):
        return None
    try:
        async with request.form() as form:
            upload = next((v for v in form.values() if isinstance(v, UploadFile)), None)
            if upload is None:
                return None
            content = await upload.read(_MAX_MOD_INFO_SIZE + 1)
    except HTTPException as e:
        logger.warning("ignoring unreadable multipart body", error=e.detail)
        return None
    if len(content) > _MAX_MOD_INFO_SIZE:
        logger.warning("ignoring oversized mod info", size=len(content))
        return None
    return parse_mod_info(content)


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok", "version": APP_VERSION, "commit": GIT_COMMIT})


async def add_server(request: Request) -> JSONResponse:
    registration: RegistrationService = request.app.state.registration

    try:
        params = RegisterServerRequest.model_validate(dict(request.query_params))
    except ValidationError as e:
        return JSONResponse({"error": str(e)}, status_code=422)

    mod_info = await _read_mod_info(request)
    result = await registration.register(params, _caller_ip(request), mod_info)
    return JSONResponse(result.model_dump(exclude_none=True))


async def heartbeat(request: Request) -> JSONResponse:
    store: RegistryStore = request.app.state.store

    try:
        params = HeartbeatRequest.model_validate(dict(request.query_params))
    except ValidationError as e:
        return JSONResponse({"error": str(e)}, status_code=422)

    await store.refresh(params.id, _caller_ip(request), params.player_count)
    return _empty()


async def update_values(request: Request) -> JSONResponse:
    store: RegistryStore = request.app.state.store

    values = dict(request.query_params)
    server_id = values.pop("id", None)
    if server_id is None:
        return _empty()

    await store.patch(server_id, _caller_ip(request), values)
    return _empty()


async def remove_server(request: Request) -> JSONResponse:
    store: RegistryStore = request.app.state.store

    server_id = request.query_params.get("id")
    if server_id is None:
        return _empty()

    await store.deregister(server_id, _caller_ip(request))
    return _empty()


async def list_servers(request: Request) -> JSONResponse:
    store: RegistryStore = request.app.state.store
    servers = await store.list_servers()
    return JSONResponse([s.public_view() for s in servers])


def create_app(settings: MasterServerSettings | None = None) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = MasterServerSettings()

    store = RegistryStore()
    monitor = LivenessMonitor(
        store,
        liveness_window=settings.liveness_window_seconds,
        sweep_interval=settings.sweep_interval_seconds,
    )
    registration = RegistrationService(
        store,
        VerificationClient(timeout=settings.verify_timeout_seconds),
        ProfanitySanitizer(settings.extra_banned_words),
    )

    routes = [
        Route("/health", health, methods=["GET"], name="health"),
        Route("/server/add_server", add_server, methods=["POST"], name="add_server"),
        Route("/server/heartbeat", heartbeat, methods=["POST"], name="heartbeat"),
        Route("/server/update_values", update_values, methods=["POST"], name="update_values"),
        Route("/server/remove_server", remove_server, methods=["DELETE"], name="remove_server"),
        Route("/client/servers", list_servers, methods=["GET"], name="list_servers"),
    ]

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncGenerator[None]:
        monitor.start()
        yield
        await monitor.stop()

    app = Starlette(routes=routes, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["Content-Type"],
    )

    app.state.settings = settings
    app.state.store = store
    app.state.liveness_monitor = monitor
    app.state.registration = registration

    logger.info("master server ready")
    return app


def get_app() -> Starlette:  # pragma: no cover
    """Factory function for uvicorn --factory masterlist.server.app:get_app."""
    settings = MasterServerSettings()
    setup_logging(log_dir=settings.log_dir)
    return create_app(settings=settings)
