"""
wwebs - CGI-first web server

Maps request paths onto the web root and runs the gatekeeper /
transformer / content pipeline found along the way.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Awaitable, Dict, Optional, Tuple
from urllib.parse import quote

from fastapi import FastAPI, Request
from fastapi.responses import Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api.deps import RequestProcessorDep
from .config import ServerConfig, config
from .core.env_builder import EnvironmentBuilder
from .core.exceptions import global_exception_handler, http_exception_handler
from .core.logging_config import setup_logging
from .middleware import request_id_middleware
from .models.request import Request as PipelineRequest
from .models.response import Response as PipelineResponse
from .services.directory_config import DirectoryConfigLoader
from .services.log_dispatcher import LogDispatcher
from .services.path_walker import PathWalker
from .services.pipeline_scheduler import PipelineScheduler
from .services.process_invoker import ProcessInvoker
from .services.processor import RequestProcessor
from .services.stage_discovery import StageDiscovery

# Logger setup
setup_logging()
logger = logging.getLogger("wwebs.main")

# Framing headers are computed by the HTTP layer, never taken from programs.
HOP_BY_HOP_HEADERS = frozenset({"content-length", "transfer-encoding", "connection"})

METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

# Reported when the client goes away before the response is ready.
CLIENT_CLOSED_REQUEST = 499
DISCONNECT_POLL_SECONDS = 0.1


def build_processor(cfg: ServerConfig) -> Tuple[RequestProcessor, LogDispatcher]:
    """Assemble the pipeline services from configuration."""
    config_loader = DirectoryConfigLoader(
        filename=cfg.CONFIG_FILENAME, cache_enabled=cfg.CONFIG_CACHE_ENABLED
    )
    walker = PathWalker(Path(cfg.WEB_ROOT), config_loader, default_index=cfg.DEFAULT_INDEX)
    discovery = StageDiscovery(config_loader)
    invoker = ProcessInvoker(
        EnvironmentBuilder(pass_path=cfg.PASS_PATH_ENV),
        default_timeout=cfg.STAGE_TIMEOUT_SECONDS,
    )
    log_dispatcher = LogDispatcher()
    scheduler = PipelineScheduler(invoker, log_dispatcher)
    return RequestProcessor(walker, discovery, scheduler), log_dispatcher


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    processor, log_dispatcher = build_processor(config)

    app.state.request_processor = processor
    app.state.log_dispatcher = log_dispatcher

    logger.info(
        f"wwebs serving {processor.walker.root} "
        f"(index={config.DEFAULT_INDEX}, stage_timeout={config.STAGE_TIMEOUT_SECONDS}s)"
    )

    yield

    logger.info("wwebs shutting down, waiting for logger stages.")
    await log_dispatcher.drain(timeout=config.STAGE_TIMEOUT_SECONDS)


app = FastAPI(
    title="wwebs",
    version="0.1.0",
    lifespan=lifespan,
    root_path=config.root_path,
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
)

app.middleware("http")(request_id_middleware)

# Register exception handlers.
app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)


def request_path(request: Request) -> str:
    """The percent-encoded request path, below root_path."""
    raw_path = request.scope.get("raw_path")
    if raw_path:
        path = raw_path.split(b"?", 1)[0].decode("latin-1")
    else:
        path = quote(request.scope.get("path", "/"))

    root_path = request.scope.get("root_path") or ""
    if root_path and path.startswith(root_path):
        path = path[len(root_path) :] or "/"
    return path


def collect_headers(request: Request) -> Dict[str, str]:
    """Header mapping; repeated headers are joined with ", "."""
    headers: Dict[str, str] = {}
    for name, value in request.headers.items():
        headers[name] = f"{headers[name]}, {value}" if name in headers else value
    return headers


async def to_pipeline_request(request: Request) -> PipelineRequest:
    return PipelineRequest(
        verb=request.method,
        url=str(request.url),
        path=request_path(request),
        headers=collect_headers(request),
        query=dict(request.query_params),
        body=await request.body(),
        protocol="HTTP",
    )


async def run_until_disconnected(
    request: Request, coro: Awaitable[PipelineResponse]
) -> Optional[PipelineResponse]:
    """
    Await `coro` while watching the client connection.

    Returns:
        The coroutine's result, or None when the client went away first. In
        that case the pipeline task is cancelled, which kills its running
        program.
    """
    task = asyncio.create_task(coro)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_SECONDS)
            if done:
                return task.result()
            if await request.is_disconnected():
                logger.info(f"Client disconnected, cancelling pipeline for {request.url.path}")
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)
                return None
    except asyncio.CancelledError:
        task.cancel()
        raise


def to_http_response(result: PipelineResponse) -> Response:
    headers = {k: v for k, v in result.headers.items() if k.lower() not in HOP_BY_HOP_HEADERS}
    try:
        return Response(content=result.body, status_code=result.status, headers=headers)
    except UnicodeEncodeError as e:
        logger.error(f"Cannot encode response headers: {e}", extra={"headers": list(headers)})
        fallback = PipelineResponse.internal_server_error()
        return Response(content=fallback.body, status_code=fallback.status)


# ===========================================
# Endpoint definitions.
# ===========================================


@app.api_route("/{path:path}", methods=METHODS)
async def pipeline_handler(request: Request, path: str, processor: RequestProcessorDep):
    """
    Catch-all route: every path is resolved against the web root.
    """
    pipeline_request = await to_pipeline_request(request)
    result = await run_until_disconnected(request, processor.process_request(pipeline_request))
    if result is None:
        return Response(status_code=CLIENT_CLOSED_REQUEST)
    return to_http_response(result)


def run():
    """Console entry point."""
    import uvicorn

    uvicorn.run(app, host=config.BIND_HOST, port=config.HTTP_PORT, log_config=None)


if __name__ == "__main__":
    run()
