"""
Services package.

Provides path resolution, stage discovery and pipeline execution.
"""

from .directory_config import DirectoryConfigLoader
from .log_dispatcher import LogDispatcher
from .path_walker import PathWalker
from .pipeline_scheduler import PipelineScheduler
from .process_invoker import ProcessInvoker
from .processor import RequestProcessor
from .response_assembler import ResponseAssembler
from .stage_discovery import DiscoveryResult, StageDiscovery

__all__ = [
    "DirectoryConfigLoader",
    "LogDispatcher",
    "PathWalker",
    "PipelineScheduler",
    "ProcessInvoker",
    "RequestProcessor",
    "ResponseAssembler",
    "DiscoveryResult",
    "StageDiscovery",
]
