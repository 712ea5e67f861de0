"""
Process Invoker Service

Runs a content file or stage file as a child process: request metadata in
the environment, request body on stdin, body on stdout, control commands on
stderr. Every invocation is an asyncio subprocess, so a slow child only
suspends the request that spawned it.
"""

import asyncio
import logging
from pathlib import Path
from typing import Mapping, Optional, Sequence

from ..core.control_channel import parse_control_output
from ..core.env_builder import EnvironmentBuilder
from ..core.exceptions import ProcessSpawnError, ProcessTimeoutError
from ..models.directory_config import DirectoryConfig
from ..models.request import Request
from ..models.result import ProcessResult
from ..models.stage import StageFile

logger = logging.getLogger("wwebs.process_invoker")
stage_logger = logging.getLogger("wwebs.stage")


class ProcessInvoker:
    def __init__(
        self,
        env_builder: EnvironmentBuilder,
        default_timeout: float = 30.0,
        kill_grace_seconds: float = 5.0,
    ):
        """
        Args:
            env_builder: EnvironmentBuilder instance
            default_timeout: execution limit when no directory config sets one
            kill_grace_seconds: how long to wait for a killed child to be reaped
        """
        self.env_builder = env_builder
        self.default_timeout = default_timeout
        self.kill_grace_seconds = kill_grace_seconds

    async def invoke(
        self,
        executable: Path,
        request: Request,
        *,
        config: Optional[DirectoryConfig] = None,
        extra_path: Sequence[str] = (),
        stdin: Optional[bytes] = None,
        status: Optional[int] = None,
        headers: Optional[Mapping[str, str]] = None,
        stage: Optional[StageFile] = None,
    ) -> ProcessResult:
        """
        Execute a program and collect its output.

        Args:
            executable: program to run
            request: current request
            config: layered directory config (extra env, timeout)
            extra_path: request segments below the program's directory, passed as argv[1]
            stdin: bytes fed to stdin; defaults to the request body
            status: current response status, for response-side stages
            headers: headers exposed as HEADER_* instead of the request's
            stage: stage being run, None for content

        Returns:
            ProcessResult

        Raises:
            ProcessSpawnError: the program could not be started
            ProcessTimeoutError: the program exceeded its time limit
        """
        config = config or DirectoryConfig()
        executable = Path(executable)
        timeout = config.timeout(self.default_timeout)
        env = self.env_builder.build(
            request, extra_env=config.env, status=status, headers=headers
        )
        context = stage.describe() if stage else {"stage_kind": "content", "stage_path": str(executable)}

        try:
            proc = await asyncio.create_subprocess_exec(
                str(executable),
                "/".join(extra_path),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(executable.parent),
                env=env,
            )
        except (OSError, ValueError) as e:
            raise ProcessSpawnError(executable, e, stage) from e

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(request.body if stdin is None else stdin), timeout
            )
        except asyncio.TimeoutError:
            await self._terminate(proc, executable)
            raise ProcessTimeoutError(executable, timeout, stage)
        except asyncio.CancelledError:
            logger.info(f"Request cancelled, killing {executable}", extra=context)
            await self._terminate(proc, executable)
            raise

        control = parse_control_output(stderr)
        for message in control.logs:
            stage_logger.info(message, extra={**context, "channel": "log"})
        for line in control.diagnostics:
            stage_logger.info(line, extra={**context, "channel": "stderr"})

        logger.debug(
            f"{executable} exited with {proc.returncode}",
            extra={**context, "exit_code": proc.returncode},
        )

        return ProcessResult(
            exit_code=proc.returncode,
            stdout=stdout,
            status=control.status,
            headers=control.headers,
            query=control.query,
            logs=control.logs,
        )

    async def _terminate(self, proc: asyncio.subprocess.Process, executable: Path) -> None:
        if proc.returncode is None:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
        try:
            await asyncio.wait_for(proc.wait(), self.kill_grace_seconds)
        except asyncio.TimeoutError:
            logger.warning(f"Killed process {executable} (pid {proc.pid}) did not exit")
