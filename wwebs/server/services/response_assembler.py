"""
Response assembly.

Accumulates status, headers and body across pipeline phases. Later writes
win; a transformer that wants to keep the body must echo it back.
"""

from typing import Optional

from ..core.control_channel import apply_header_commands
from ..models.response import Response
from ..models.result import GatekeeperVerdict, ProcessResult


class ResponseAssembler:
    def __init__(self):
        self.response = Response()

    @property
    def status(self) -> int:
        return self.response.status

    def apply_rejection(self, verdict: GatekeeperVerdict) -> None:
        self.response = Response(status=verdict.status or 403, body=verdict.body)
        apply_header_commands(self.response.headers, verdict.headers)

    def apply_static(self, body: bytes, content_type: Optional[str] = None) -> None:
        self.response = Response(status=200, body=body)
        if content_type:
            self.response.headers["Content-Type"] = content_type

    def apply_content(self, result: ProcessResult) -> None:
        self.response = Response(status=result.effective_status, body=result.stdout)
        apply_header_commands(self.response.headers, result.headers)

    def apply_transform(self, result: ProcessResult) -> None:
        """Write a response transformer's output over the current response."""
        self.response.body = result.stdout
        apply_header_commands(self.response.headers, result.headers)
        if result.status is not None:
            self.response.status = result.status

    def finalize(self) -> Response:
        return self.response.model_copy(deep=True)
