"""
Pipeline scheduler.

Drives one request through its stages:

1. gatekeepers            (depth asc, sequence asc), stop at the first rejection
2. request transformers   (depth asc, sequence asc), only if nothing rejected
3. content                executed or read verbatim, only if nothing rejected
4. response transformers  (depth desc, sequence asc); after a rejection only
                          those no deeper than the rejecting gatekeeper
5. finalize               then hand loggers to the LogDispatcher

Stages of one request always run sequentially.
"""

import asyncio
import logging
import mimetypes
from typing import Iterable, List, Optional

from ..core.control_channel import apply_header_commands, apply_query_commands
from ..core.exceptions import ContentReadError
from ..models.directory_config import DirectoryConfig
from ..models.request import Request
from ..models.resolution import Found
from ..models.response import Response
from ..models.result import GatekeeperVerdict, ProcessResult
from ..models.stage import StageFile, StageKind
from .log_dispatcher import LogDispatcher
from .process_invoker import ProcessInvoker
from .response_assembler import ResponseAssembler
from .stage_discovery import DiscoveryResult

logger = logging.getLogger("wwebs.pipeline")


def order_forward(stages: Iterable[StageFile]) -> List[StageFile]:
    return sorted(stages, key=lambda s: s.forward_key)


def order_reverse(stages: Iterable[StageFile], max_depth: Optional[int] = None) -> List[StageFile]:
    """Depth descending, sequence ascending, optionally capped at `max_depth`."""
    return sorted(
        (s for s in stages if max_depth is None or s.depth <= max_depth),
        key=lambda s: s.reverse_key,
    )


def guess_content_type(found: Found, config: DirectoryConfig) -> Optional[str]:
    suffix = found.target.path.suffix.lower()
    if suffix and suffix in config.mime:
        return config.mime[suffix]
    content_type, _ = mimetypes.guess_type(found.target.name)
    return content_type


class PipelineScheduler:
    def __init__(self, invoker: ProcessInvoker, log_dispatcher: Optional[LogDispatcher] = None):
        """
        Args:
            invoker: ProcessInvoker instance
            log_dispatcher: runs logger stages in the background
        """
        self.invoker = invoker
        self.log_dispatcher = log_dispatcher or LogDispatcher()

    async def run(self, request: Request, discovery: DiscoveryResult, found: Found) -> Response:
        """
        Execute the pipeline for a resolved request.

        Raises:
            ExecutionFault: a stage or the content could not be executed or read
        """
        config = discovery.config
        assembler = ResponseAssembler()
        cutoff_depth: Optional[int] = None

        for stage in order_forward(discovery.of_kind(StageKind.GATEKEEPER)):
            result = await self._invoke_stage(stage, request, found, config)
            verdict = GatekeeperVerdict.from_process(stage, result)
            if not verdict.passed:
                logger.info(
                    f"Request {request.path} rejected by {stage.path} with {verdict.status}",
                    extra={**stage.describe(), "status": verdict.status},
                )
                assembler.apply_rejection(verdict)
                cutoff_depth = stage.depth
                break

        if cutoff_depth is None:
            for stage in order_forward(discovery.of_kind(StageKind.REQUEST_TRANSFORMER)):
                result = await self._invoke_stage(stage, request, found, config)
                request = self._transform_request(stage, request, result)

            await self._run_content(request, found, config, assembler)

        for stage in order_reverse(discovery.of_kind(StageKind.RESPONSE_TRANSFORMER), cutoff_depth):
            result = await self._invoke_stage(
                stage,
                request,
                found,
                config,
                stdin=assembler.response.body,
                status=assembler.status,
                headers=assembler.response.headers,
            )
            if result.exit_code == 0:
                assembler.apply_transform(result)
            else:
                logger.warning(
                    f"Response transformer {stage.path} exited with {result.exit_code}, "
                    "discarding its output",
                    extra={**stage.describe(), "exit_code": result.exit_code},
                )

        response = assembler.finalize()

        loggers = order_reverse(discovery.of_kind(StageKind.LOGGER), cutoff_depth)
        if loggers:

            async def run_logger(stage: StageFile) -> ProcessResult:
                return await self._invoke_stage(
                    stage, request, found, config, status=response.status
                )

            self.log_dispatcher.dispatch(loggers, run_logger)

        return response

    async def _invoke_stage(
        self,
        stage: StageFile,
        request: Request,
        found: Found,
        config: DirectoryConfig,
        **kwargs,
    ) -> ProcessResult:
        return await self.invoker.invoke(
            stage.path,
            request,
            config=config,
            extra_path=found.segments[stage.depth :],
            stage=stage,
            **kwargs,
        )

    def _transform_request(self, stage: StageFile, request: Request, result: ProcessResult) -> Request:
        if not result.passed:
            logger.warning(
                f"Request transformer {stage.path} failed with {result.effective_status}, "
                "leaving the request unchanged",
                extra={**stage.describe(), "exit_code": result.exit_code},
            )
            return request
        return request.model_copy(
            update={
                "body": result.stdout,
                "headers": apply_header_commands(dict(request.headers), result.headers),
                "query": apply_query_commands(dict(request.query), result.query),
            }
        )

    async def _run_content(
        self,
        request: Request,
        found: Found,
        config: DirectoryConfig,
        assembler: ResponseAssembler,
    ) -> None:
        target = found.target
        if found.is_executable:
            result = await self.invoker.invoke(
                target.path, request, config=config, extra_path=found.extra_path
            )
            assembler.apply_content(result)
            return

        try:
            body = await asyncio.to_thread(target.path.read_bytes)
        except OSError as e:
            raise ContentReadError(target.path, e) from e
        assembler.apply_static(body, guess_content_type(found, config))
