"""
Request model.

HTTP-like request handed to the pipeline by a protocol listener.
"""

from typing import Dict

from pydantic import BaseModel, ConfigDict, Field


class Request(BaseModel):
    """
    Protocol-neutral request.

    Headers with repeated values are joined with ", " by the listener;
    for repeated query parameters the last value wins.
    """

    model_config = ConfigDict(frozen=True)

    verb: str = "GET"
    url: str = "http://localhost/"
    path: str = "/"
    headers: Dict[str, str] = Field(default_factory=dict)
    query: Dict[str, str] = Field(default_factory=dict)
    body: bytes = b""
    protocol: str = "HTTP"

    @property
    def method(self) -> str:
        """The verb, with the empty verb read as GET."""
        return self.verb.upper() or "GET"
