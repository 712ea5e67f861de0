"""
Directory config loader.

Reads the per-directory config file (.wwebs.yml) and merges the layers found
along a walked path. Parsed files are cached until their modification time
changes.
"""

import logging
import os
import stat
import threading
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

import yaml
from pydantic import ValidationError

from ..models.directory_config import DirectoryConfig

logger = logging.getLogger("wwebs.directory_config")

# (st_mtime_ns, st_size) identifies one version of a file.
_Signature = Tuple[int, int]


class DirectoryConfigLoader:
    def __init__(self, filename: str = ".wwebs.yml", cache_enabled: bool = True):
        """
        Args:
            filename: config filename looked up in each directory
            cache_enabled: keep parsed configs until the file changes
        """
        self.filename = filename
        self.cache_enabled = cache_enabled
        self._cache: Dict[Path, Tuple[_Signature, Optional[DirectoryConfig]]] = {}
        self._lock = threading.RLock()

    def load(self, directory: Path) -> Optional[DirectoryConfig]:
        """
        Load the config file of one directory.

        Returns:
            The parsed config, or None when the directory has no usable config
        """
        config_path = Path(directory) / self.filename
        try:
            st = os.stat(config_path)
        except FileNotFoundError:
            self._forget(config_path)
            return None
        except OSError as e:
            logger.error(f"Error checking config file {config_path}: {e}")
            return None

        if not stat.S_ISREG(st.st_mode):
            logger.warning(f"Ignoring config path that is not a regular file: {config_path}")
            return None

        signature = (st.st_mtime_ns, st.st_size)
        if self.cache_enabled:
            with self._lock:
                cached = self._cache.get(config_path)
            if cached is not None and cached[0] == signature:
                return cached[1]

        parsed = self._parse(config_path)
        if self.cache_enabled:
            with self._lock:
                self._cache[config_path] = (signature, parsed)
        return parsed

    def layered(self, directories: Iterable[Path]) -> DirectoryConfig:
        """
        Merge the configs of `directories`, ordered shallowest first.
        Deeper directories win key by key.
        """
        layers = []
        for directory in directories:
            layer = self.load(directory)
            if layer is not None:
                layers.append(layer)
        return DirectoryConfig.layered(layers)

    def _forget(self, config_path: Path) -> None:
        if self.cache_enabled:
            with self._lock:
                self._cache.pop(config_path, None)

    def _parse(self, config_path: Path) -> Optional[DirectoryConfig]:
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f)
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Error reading directory config {config_path}: {e}")
            return None
        except yaml.YAMLError as e:
            logger.error(f"Error parsing directory config {config_path}: {e}")
            return None

        if raw is None:
            return DirectoryConfig()
        if not isinstance(raw, dict):
            logger.error(f"Directory config {config_path} must be a mapping, ignoring it")
            return None

        try:
            parsed = DirectoryConfig.model_validate(raw)
        except ValidationError as e:
            logger.error(
                f"Invalid directory config {config_path}, ignoring it",
                extra={"path": str(config_path), "error_detail": str(e)},
            )
            return None

        logger.debug(f"Loaded directory config from {config_path}")
        return parsed
