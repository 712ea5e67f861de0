"""
Stage discovery service.

Scans every directory traversed by a request for stage files and parses
their kind, depth and sequence. Recognized names are a marker optionally
followed by "#<n>":

    .gatekeeper  .gatekeeper#1  .req_transformer#2  .res_transformer  .logger#10

A bare marker is sequence 0. Names with any other suffix are ignored.
The directory config file is recorded as a CONFIG stage and merged into
the layered config immediately.
"""

import logging
import os
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from ..core.exceptions import ExecutionFault
from ..models.directory_config import DirectoryConfig
from ..models.resolution import PathSegment
from ..models.stage import SEQUENCE_SEPARATOR, STAGE_MARKERS, StageFile, StageKind
from .directory_config import DirectoryConfigLoader

logger = logging.getLogger("wwebs.stage_discovery")


def parse_stage_name(filename: str) -> Optional[Tuple[StageKind, int]]:
    """
    Parse a stage filename.

    Returns:
        (kind, sequence), or None when the name is not a usable stage name
    """
    for marker, kind in STAGE_MARKERS.items():
        if not filename.startswith(marker):
            continue
        suffix = filename[len(marker) :]
        if not suffix:
            return kind, 0
        if not suffix.startswith(SEQUENCE_SEPARATOR):
            return None
        digits = suffix[len(SEQUENCE_SEPARATOR) :]
        if digits.isascii() and digits.isdigit():
            return kind, int(digits)
        return None
    return None


def is_reserved_name(filename: str, config_filename: str) -> bool:
    """True for names that belong to the pipeline and must never be served."""
    if filename == config_filename:
        return True
    return any(filename.startswith(marker) for marker in STAGE_MARKERS)


class DiscoveryResult(BaseModel):
    stages: List[StageFile] = Field(default_factory=list)
    config: DirectoryConfig = Field(default_factory=DirectoryConfig)

    def of_kind(self, kind: StageKind) -> List[StageFile]:
        return [s for s in self.stages if s.kind == kind]


class StageDiscovery:
    def __init__(self, config_loader: DirectoryConfigLoader):
        """
        Args:
            config_loader: DirectoryConfigLoader shared with the PathWalker
        """
        self.config_loader = config_loader

    def discover(self, traversed: Sequence[PathSegment]) -> DiscoveryResult:
        """
        Discover the stages hosted by the traversed directories.

        Args:
            traversed: directories walked for the request, root first

        Returns:
            DiscoveryResult with stages in (depth, sequence, filename) order
            and the layered directory config

        Raises:
            ExecutionFault: a traversed directory cannot be listed
        """
        stages: List[StageFile] = []
        layers: List[DirectoryConfig] = []

        for directory in traversed:
            if not directory.is_dir:
                continue
            for filename in self._list_files(directory):
                if filename == self.config_loader.filename:
                    layer = self.config_loader.load(directory.path)
                    if layer is not None:
                        layers.append(layer)
                        stages.append(
                            StageFile(
                                kind=StageKind.CONFIG,
                                depth=directory.depth,
                                path=directory.path / filename,
                            )
                        )
                    continue

                parsed = parse_stage_name(filename)
                if parsed is None:
                    if is_reserved_name(filename, self.config_loader.filename):
                        logger.debug(f"Ignoring unrecognized stage file {directory.path / filename}")
                    continue

                kind, sequence = parsed
                stages.append(
                    StageFile(
                        kind=kind,
                        depth=directory.depth,
                        sequence=sequence,
                        path=directory.path / filename,
                    )
                )

        stages.sort(key=lambda s: s.forward_key)
        self._warn_on_conflicts(stages)

        return DiscoveryResult(stages=stages, config=DirectoryConfig.layered(layers))

    def _list_files(self, directory: PathSegment) -> List[str]:
        try:
            with os.scandir(directory.path) as it:
                return sorted(entry.name for entry in it if entry.is_file())
        except OSError as e:
            raise ExecutionFault(directory.path, e, detail="failed to list directory") from e

    def _warn_on_conflicts(self, stages: Sequence[StageFile]) -> None:
        groups: Dict[Tuple[StageKind, int, int], List[str]] = defaultdict(list)
        for stage in stages:
            if stage.kind == StageKind.CONFIG:
                continue
            groups[(stage.kind, stage.depth, stage.sequence)].append(str(stage.path))

        for (kind, depth, sequence), paths in groups.items():
            if len(paths) > 1:
                logger.warning(
                    f"Duplicate {kind.value} sequence {sequence} at depth {depth}, "
                    f"running in filename order: {', '.join(paths)}",
                    extra={
                        "stage_kind": kind.value,
                        "depth": depth,
                        "sequence": sequence,
                        "paths": paths,
                    },
                )
