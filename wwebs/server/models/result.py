"""
Pipeline result models.

Standardizes the output of executed programs and gatekeepers.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .stage import StageFile

DEFAULT_REJECTION_STATUS = 403


class ProcessResult(BaseModel):
    """
    Outcome of one finished program.

    Attributes:
        exit_code: process exit code (negative when killed by a signal)
        stdout: standard output, verbatim
        status: last `status <code>` command, if any
        headers: `header <name> <value>` commands in order (empty value = delete)
        query: `query <name> <value>` commands in order (empty value = delete)
        logs: `log <message>` commands
    """

    exit_code: int
    stdout: bytes = b""
    status: Optional[int] = None
    headers: Dict[str, str] = Field(default_factory=dict)
    query: Dict[str, str] = Field(default_factory=dict)
    logs: List[str] = Field(default_factory=list)

    @property
    def effective_status(self) -> int:
        if self.status is not None:
            return self.status
        return 200 if self.exit_code == 0 else 500

    @property
    def passed(self) -> bool:
        """Exit code 0 and a 2xx effective status."""
        return self.exit_code == 0 and 200 <= self.effective_status < 300


class GatekeeperVerdict(BaseModel):
    """Pass/fail decision of a gatekeeper; a rejection is not an error."""

    passed: bool
    stage: StageFile
    status: Optional[int] = None
    body: bytes = b""
    headers: Dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_process(cls, stage: StageFile, result: ProcessResult) -> "GatekeeperVerdict":
        if result.passed:
            return cls(passed=True, stage=stage)
        status = result.status
        if status is None or 200 <= status < 300:
            status = DEFAULT_REJECTION_STATUS
        return cls(
            passed=False,
            stage=stage,
            status=status,
            body=result.stdout,
            headers=result.headers,
        )
