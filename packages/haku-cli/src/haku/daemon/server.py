"""
haku offline worker - local FastAPI server sitting between clients and the backend.

Endpoints:
- POST /message - Control messages. {"type": "UPDATE"} activates the waiting
  worker version right away; any other type is logged and ignored.
- GET /health - Active and waiting versions, backend reachability

A version waits when the installed haku package differs from the code this
worker process runs, e.g. after an upgrade while the worker kept running.
- everything else - forwarded unchanged to the backend (no caching)
"""

import logging
import signal
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from importlib import metadata
from typing import Any, Callable, Dict, Optional

import httpx
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict

from haku.config import Settings

logger = logging.getLogger(__name__)

WORKER_VERSION = "0.1.0"
DISTRIBUTION_NAME = "haku"

# Headers that describe a single hop and must not be forwarded.
HOP_HEADERS = {
    "connection",
    "content-encoding",
    "content-length",
    "host",
    "keep-alive",
    "transfer-encoding",
    "upgrade",
}


# =============================================================================
# Request/Response Models
# =============================================================================

class WorkerMessage(BaseModel):
    """Message posted to the worker by a client."""

    model_config = ConfigDict(extra="allow")

    type: str


class MessageResponse(BaseModel):
    accepted: bool
    active_version: str
    waiting_version: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    uptime_seconds: float
    backend_url: str
    active_version: str
    waiting_version: Optional[str] = None


# =============================================================================
# Worker State
# =============================================================================

def installed_package_version() -> Optional[str]:
    """Version of the haku distribution currently installed on disk."""
    try:
        return metadata.version(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        return None


class WorkerState:
    """Versions known to this worker and its connection to the backend."""

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        installed_version: Callable[[], Optional[str]] = installed_package_version,
    ):
        self.start_time = datetime.now(timezone.utc)
        self.settings = settings
        self.transport = transport
        self.installed_version = installed_version
        self.active_version: str = WORKER_VERSION
        self.waiting_version: Optional[str] = None
        self.http_client: Optional[httpx.AsyncClient] = None

    @property
    def uptime_seconds(self) -> float:
        return (datetime.now(timezone.utc) - self.start_time).total_seconds()

    @property
    def backend_url(self) -> str:
        return self.settings.api_url.rstrip("/")

    def install(self, version: str) -> None:
        """Register a new version that waits until it is activated."""
        if version == self.active_version:
            return
        self.waiting_version = version
        logger.info("Worker version %s installed and waiting", version)

    def check_for_update(self) -> Optional[str]:
        """Install the on-disk package version if it differs from the running one."""
        version = self.installed_version()
        if version is not None and version != self.waiting_version:
            self.install(version)
        return self.waiting_version

    def skip_waiting(self) -> bool:
        """Activate the waiting version. Returns False when nothing waits."""
        if self.waiting_version is None:
            logger.info("Update requested but no worker version is waiting")
            return False
        logger.info("Activating worker version %s (was %s)", self.waiting_version, self.active_version)
        self.active_version = self.waiting_version
        self.waiting_version = None
        return True


# =============================================================================
# Application
# =============================================================================

def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    installed_version: Callable[[], Optional[str]] = installed_package_version,
) -> FastAPI:
    """Build the worker app; ``transport`` replaces the network in tests."""
    state = WorkerState(settings or Settings(), transport, installed_version)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        state.http_client = httpx.AsyncClient(
            base_url=state.backend_url,
            timeout=state.settings.timeout,
            transport=state.transport,
        )
        logger.info("Offline worker %s forwarding to %s", state.active_version, state.backend_url)
        state.check_for_update()
        try:
            yield
        finally:
            await state.http_client.aclose()
            state.http_client = None

    app = FastAPI(title="haku offline worker", version=WORKER_VERSION, lifespan=lifespan)
    app.state.worker = state

    @app.post("/message", response_model=MessageResponse)
    async def post_message(message: WorkerMessage):
        state.check_for_update()
        if message.type == "UPDATE":
            state.skip_waiting()
            return MessageResponse(
                accepted=True,
                active_version=state.active_version,
                waiting_version=state.waiting_version,
            )
        logger.warning("Ignoring unknown worker message type %r", message.type)
        return MessageResponse(
            accepted=False,
            active_version=state.active_version,
            waiting_version=state.waiting_version,
        )

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        state.check_for_update()
        return HealthResponse(
            status="healthy",
            uptime_seconds=state.uptime_seconds,
            backend_url=state.backend_url,
            active_version=state.active_version,
            waiting_version=state.waiting_version,
        )

    @app.api_route(
        "/{path:path}",
        methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"],
    )
    async def passthrough(path: str, request: Request):
        headers: Dict[str, Any] = {
            key: value for key, value in request.headers.items() if key.lower() not in HOP_HEADERS
        }
        try:
            upstream = await state.http_client.request(
                request.method,
                f"/{path}",
                params=request.query_params,
                content=await request.body(),
                headers=headers,
            )
        except httpx.TransportError as exc:
            logger.warning("Backend unreachable for %s /%s: %s", request.method, path, exc)
            return JSONResponse(
                status_code=503,
                content={
                    "error": "network_error",
                    "message": "The server could not be reached",
                    "detail": {"path": f"/{path}"},
                },
            )

        response_headers = {
            key: value for key, value in upstream.headers.items() if key.lower() not in HOP_HEADERS
        }
        return Response(
            content=upstream.content,
            status_code=upstream.status_code,
            headers=response_headers,
        )

    return app


# =============================================================================
# Entry Point
# =============================================================================

def run_server(host: str = "127.0.0.1", port: Optional[int] = None):
    """Run the offline worker."""
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    settings = Settings()
    app = create_app(settings)

    def handle_signal(signum, frame):
        logger.info(f"Received signal {signum}, shutting down worker...")
        sys.exit(0)

    signal.signal(signal.SIGTERM, handle_signal)
    signal.signal(signal.SIGINT, handle_signal)

    uvicorn.run(app, host=host, port=port or settings.worker_port, log_level="info")


if __name__ == "__main__":
    run_server()
