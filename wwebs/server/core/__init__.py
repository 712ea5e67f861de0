"""
Core logic package.

Provides the process protocol helpers and pipeline exceptions.
"""

from .control_channel import (
    ControlOutput,
    apply_header_commands,
    apply_query_commands,
    is_valid_header,
    parse_control_output,
)
from .env_builder import EnvironmentBuilder
from .exceptions import (
    ContentReadError,
    ExecutionFault,
    PipelineError,
    ProcessSpawnError,
    ProcessTimeoutError,
)

__all__ = [
    "ControlOutput",
    "apply_header_commands",
    "apply_query_commands",
    "is_valid_header",
    "parse_control_output",
    "EnvironmentBuilder",
    "ContentReadError",
    "ExecutionFault",
    "PipelineError",
    "ProcessSpawnError",
    "ProcessTimeoutError",
]
