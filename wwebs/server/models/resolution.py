"""
Path resolution models.

Output of the PathWalker and input of StageDiscovery.
"""

import stat
from pathlib import Path
from typing import List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

OTHERS_READ = stat.S_IROTH
OTHERS_EXECUTE = stat.S_IXOTH


class PathSegment(BaseModel):
    """One filesystem entry visited while walking a request path."""

    model_config = ConfigDict(frozen=True)

    name: str
    path: Path
    depth: int
    mode: int
    is_dir: bool

    @property
    def others_readable(self) -> bool:
        return bool(self.mode & OTHERS_READ)

    @property
    def others_executable(self) -> bool:
        return bool(self.mode & OTHERS_EXECUTE)


class NotFound(BaseModel):
    model_config = ConfigDict(frozen=True)

    outcome: Literal["not_found"] = "not_found"
    reason: str


class Found(BaseModel):
    """
    A resolved target.

    Attributes:
        target: the file to execute or read
        is_executable: True when the target carries the "others execute" bit
        traversed: directories walked, root first
        segments: decoded request path segments, without an appended index name
        extra_path: request segments below an executable met mid-path
    """

    model_config = ConfigDict(frozen=True)

    outcome: Literal["found"] = "found"
    target: PathSegment
    is_executable: bool
    traversed: List[PathSegment] = Field(default_factory=list)
    segments: List[str] = Field(default_factory=list)
    extra_path: List[str] = Field(default_factory=list)


ResolutionOutcome = Union[Found, NotFound]
