"""
Custom exception classes.

Represent faults raised while executing a request pipeline. A gatekeeper
rejection or a missing path is a normal outcome and never raises.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..models.stage import StageFile

logger = logging.getLogger(__name__)


class PipelineError(Exception):
    """Base exception class for pipeline execution."""

    pass


class ExecutionFault(PipelineError):
    """
    Raised when a stage or content file cannot be executed or read.

    Aborts the rest of the pipeline; the request is answered with the
    fixed internal-error response.
    """

    def __init__(
        self,
        path: Path,
        cause: Exception,
        stage: Optional[StageFile] = None,
        detail: str = "execution failed",
    ):
        self.path = Path(path)
        self.cause = cause
        self.stage = stage
        self.detail = detail
        super().__init__(f"{detail} for {self.path}: {cause}")

    def context(self) -> Dict[str, Any]:
        """Diagnostic fields for structured logging."""
        ctx: Dict[str, Any] = {
            "path": str(self.path),
            "error_type": type(self.cause).__name__,
            "error_detail": str(self.cause),
        }
        if self.stage is not None:
            ctx.update(self.stage.describe())
        else:
            ctx["stage_kind"] = "content"
        return ctx


class ProcessSpawnError(ExecutionFault):
    """Raised when a program cannot be started."""

    def __init__(self, path: Path, cause: Exception, stage: Optional[StageFile] = None):
        super().__init__(path, cause, stage, detail="failed to spawn process")


class ProcessTimeoutError(ExecutionFault):
    """Raised when a program exceeds its execution time limit."""

    def __init__(self, path: Path, timeout: float, stage: Optional[StageFile] = None):
        self.timeout = timeout
        super().__init__(
            path,
            TimeoutError(f"timed out after {timeout}s"),
            stage,
            detail="process timed out",
        )


class ContentReadError(ExecutionFault):
    """Raised when a static file that must be served cannot be read."""

    def __init__(self, path: Path, cause: Exception):
        super().__init__(path, cause, detail="failed to read content")


# ===========================================
# Exception Handlers
# ===========================================


async def global_exception_handler(request: Request, exc: Exception):
    """
    Catch-all handler for unhandled exceptions.
    """
    logger.error(
        f"Global exception handler caught: {exc}",
        exc_info=True,
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Internal Server Error"},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """
    Handler for HTTPException.
    """
    return JSONResponse(status_code=exc.status_code, content={"message": exc.detail})
