"""
Stage file models.

A StageFile is a pipeline stage discovered by directory enumeration.
"""

from enum import Enum
from pathlib import Path
from typing import Tuple

from pydantic import BaseModel, ConfigDict


class StageKind(str, Enum):
    GATEKEEPER = "gatekeeper"
    REQUEST_TRANSFORMER = "request-transformer"
    RESPONSE_TRANSFORMER = "response-transformer"
    LOGGER = "logger"
    CONFIG = "config"


# Filename prefix of every executable stage kind.
STAGE_MARKERS = {
    ".gatekeeper": StageKind.GATEKEEPER,
    ".req_transformer": StageKind.REQUEST_TRANSFORMER,
    ".res_transformer": StageKind.RESPONSE_TRANSFORMER,
    ".logger": StageKind.LOGGER,
}

# Separates a marker from its sequence number, e.g. ".gatekeeper#2".
SEQUENCE_SEPARATOR = "#"


class StageFile(BaseModel):
    """
    A discovered stage artifact.

    Attributes:
        kind: stage kind
        depth: walk depth of the directory hosting the file (0 = web root)
        sequence: ordering key among stages of the same kind and depth
        path: absolute path of the file
    """

    model_config = ConfigDict(frozen=True)

    kind: StageKind
    depth: int
    sequence: int = 0
    path: Path

    @property
    def filename(self) -> str:
        return self.path.name

    @property
    def forward_key(self) -> Tuple[int, int, str]:
        """(depth asc, sequence asc), filename breaking ties."""
        return (self.depth, self.sequence, self.filename)

    @property
    def reverse_key(self) -> Tuple[int, int, str]:
        """(depth desc, sequence asc), filename breaking ties."""
        return (-self.depth, self.sequence, self.filename)

    def describe(self) -> dict:
        """Context fields attached to log records about this stage."""
        return {
            "stage_kind": self.kind.value,
            "stage_path": str(self.path),
            "depth": self.depth,
            "sequence": self.sequence,
        }
