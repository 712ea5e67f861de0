"""
Response model.

Mutable HTTP-like response accumulated by the pipeline.
"""

from typing import Dict

from pydantic import BaseModel, Field

INTERNAL_ERROR_BODY = b"INTERNAL SERVER ERROR"


class Response(BaseModel):
    status: int = 200
    headers: Dict[str, str] = Field(default_factory=dict)
    body: bytes = b""

    @classmethod
    def not_found(cls) -> "Response":
        return cls(status=404)

    @classmethod
    def internal_server_error(cls) -> "Response":
        """The fixed response for execution faults."""
        return cls(status=500, body=INTERNAL_ERROR_BODY)
