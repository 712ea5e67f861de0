"""
Path walking service.

Maps a request path onto the web root one segment at a time, applying the
"others" permission bits:

- every visited entry, root included, needs "others read";
- a file met before the last segment is the target only if it has
  "others execute"; the rest of the path is handed to it as extra path;
- a directory met at the last segment resolves to its index file.

No partial matching or redirection is performed.
"""

import logging
import os
import stat
from pathlib import Path
from typing import List, Optional
from urllib.parse import unquote

from ..models.resolution import Found, NotFound, PathSegment, ResolutionOutcome
from .directory_config import DirectoryConfigLoader
from .stage_discovery import is_reserved_name

logger = logging.getLogger("wwebs.path_walker")


def split_request_path(request_path: str) -> List[str]:
    """
    Split a request path into decoded segments.

    Empty segments are dropped.

    Raises:
        ValueError: a segment is "." or "..", or decodes to something
            containing "/" or NUL
    """
    segments = []
    for raw in request_path.split("/"):
        if not raw:
            continue
        segment = unquote(raw, errors="strict")
        if segment in (".", "..") or "/" in segment or "\0" in segment:
            raise ValueError(f"Illegal path segment: {raw!r}")
        segments.append(segment)
    return segments


class PathWalker:
    def __init__(
        self,
        root: Path,
        config_loader: DirectoryConfigLoader,
        default_index: str = "index.html",
    ):
        """
        Args:
            root: web root directory (depth 0)
            config_loader: loader used to find configured index names
            default_index: index filename when no config overrides it
        """
        self.root = Path(root).resolve()
        self.config_loader = config_loader
        self.default_index = default_index

    def resolve(self, request_path: str) -> ResolutionOutcome:
        """
        Resolve a request path.

        Args:
            request_path: URL path, percent-encoded (e.g. "/a/b%20c/file.txt")

        Returns:
            Found or NotFound
        """
        try:
            segments = split_request_path(request_path)
        except (ValueError, UnicodeDecodeError) as e:
            return NotFound(reason=str(e))

        current = self._inspect(self.root, "", 0)
        if current is None:
            return NotFound(reason=f"web root {self.root} does not exist")
        if not current.is_dir:
            return NotFound(reason=f"web root {self.root} is not a directory")
        if not current.others_readable:
            return NotFound(reason="web root is not readable by others")

        traversed = [current]

        for position, name in enumerate(segments):
            if is_reserved_name(name, self.config_loader.filename):
                return NotFound(reason=f"{name!r} is a pipeline file")

            entry = self._inspect(current.path / name, name, current.depth + 1)
            if entry is None:
                return NotFound(reason=f"{current.path / name} does not exist")
            if not entry.others_readable:
                return NotFound(reason=f"{entry.path} is not readable by others")

            if entry.is_dir:
                traversed.append(entry)
                current = entry
                continue

            remaining = segments[position + 1 :]
            if remaining:
                if not entry.others_executable:
                    return NotFound(reason=f"{entry.path} is not executable and has a path below it")
                return Found(
                    target=entry,
                    is_executable=True,
                    traversed=traversed,
                    segments=segments,
                    extra_path=remaining,
                )

            return Found(
                target=entry,
                is_executable=entry.others_executable,
                traversed=traversed,
                segments=segments,
            )

        return self._resolve_index(current, traversed, segments)

    def _resolve_index(
        self, directory: PathSegment, traversed: List[PathSegment], segments: List[str]
    ) -> ResolutionOutcome:
        config = self.config_loader.layered(d.path for d in traversed)
        index_name = config.index_name(self.default_index)
        if is_reserved_name(index_name, self.config_loader.filename):
            return NotFound(reason=f"index {index_name!r} is a pipeline file")

        entry = self._inspect(directory.path / index_name, index_name, directory.depth + 1)
        if entry is None:
            return NotFound(reason=f"index {directory.path / index_name} does not exist")
        if entry.is_dir:
            return NotFound(reason=f"index {entry.path} is a directory")
        if not entry.others_readable:
            return NotFound(reason=f"index {entry.path} is not readable by others")

        return Found(
            target=entry,
            is_executable=entry.others_executable,
            traversed=traversed,
            segments=segments,
        )

    def _inspect(self, path: Path, name: str, depth: int) -> Optional[PathSegment]:
        """
        Stat one entry, following symlinks.

        Returns:
            PathSegment, or None when the entry is missing or is neither a
            regular file nor a directory
        """
        try:
            st = os.stat(path)
        except (FileNotFoundError, NotADirectoryError):
            return None
        except OSError as e:
            logger.warning(f"Cannot stat {path}: {e}")
            return None

        if not (stat.S_ISDIR(st.st_mode) or stat.S_ISREG(st.st_mode)):
            return None

        return PathSegment(
            name=name,
            path=path,
            depth=depth,
            mode=stat.S_IMODE(st.st_mode),
            is_dir=stat.S_ISDIR(st.st_mode),
        )
