"""
Data model definitions package.

Aggregates Pydantic models for use in other modules.
"""

from .directory_config import DirectoryConfig, ExecutionInfo, ResolutionInfo
from .request import Request
from .resolution import Found, NotFound, PathSegment, ResolutionOutcome
from .response import Response
from .result import GatekeeperVerdict, ProcessResult
from .stage import STAGE_MARKERS, StageFile, StageKind

__all__ = [
    "DirectoryConfig",
    "ExecutionInfo",
    "ResolutionInfo",
    "Request",
    "Found",
    "NotFound",
    "PathSegment",
    "ResolutionOutcome",
    "Response",
    "GatekeeperVerdict",
    "ProcessResult",
    "STAGE_MARKERS",
    "StageFile",
    "StageKind",
]
