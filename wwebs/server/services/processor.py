"""
Request Processor - Service Layer

Standardizes the flow: Request -> resolution -> stage discovery -> pipeline -> Response.
Execution faults stop here and become the fixed internal-error response.
"""

import asyncio
import logging

from ..core.exceptions import ExecutionFault
from ..models.request import Request
from ..models.resolution import NotFound
from ..models.response import Response
from .path_walker import PathWalker
from .pipeline_scheduler import PipelineScheduler
from .stage_discovery import StageDiscovery

logger = logging.getLogger("wwebs.processor")


class RequestProcessor:
    """
    Orchestrates the request processing lifecycle.
    """

    def __init__(self, walker: PathWalker, discovery: StageDiscovery, scheduler: PipelineScheduler):
        self.walker = walker
        self.discovery = discovery
        self.scheduler = scheduler

    async def process_request(self, request: Request) -> Response:
        """
        Process a Request into a Response. Never raises for pipeline faults.
        """
        logger.debug(f"Processing {request.method} {request.path}")

        try:
            outcome = await asyncio.to_thread(self.walker.resolve, request.path)
            if isinstance(outcome, NotFound):
                logger.debug(
                    f"Not found: {request.path} ({outcome.reason})",
                    extra={"path": request.path, "reason": outcome.reason},
                )
                return Response.not_found()

            discovery = await asyncio.to_thread(self.discovery.discover, outcome.traversed)
            return await self.scheduler.run(request, discovery, outcome)

        except ExecutionFault as e:
            logger.error(
                f"Pipeline aborted for {request.path}: {e}",
                extra={"request_path": request.path, **e.context()},
            )
            return Response.internal_server_error()
        except Exception as e:
            logger.exception(f"Unexpected error in request processor: {e}")
            return Response.internal_server_error()
