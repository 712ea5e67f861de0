import os
from pathlib import Path
from typing import Union

import pytest

# Config is initialized at import time, so set the environment at the top level.
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("STAGE_TIMEOUT_SECONDS", "10")


class WebRoot:
    """Builds a web root with explicit permission bits."""

    def __init__(self, root: Path):
        self.root = root

    def dir(self, rel: str, mode: int = 0o755) -> Path:
        path = self.root / rel
        path.mkdir(parents=True, exist_ok=True)
        os.chmod(path, mode)
        return path

    def file(self, rel: str, content: Union[str, bytes] = b"", mode: int = 0o644) -> Path:
        path = self.root / rel
        if not path.parent.exists():
            self.dir(str(path.parent.relative_to(self.root)))
        if isinstance(content, str):
            content = content.encode("utf-8")
        path.write_bytes(content)
        os.chmod(path, mode)
        return path

    def script(self, rel: str, body: str, mode: int = 0o755) -> Path:
        """A /bin/sh program; `body` is the script without the shebang."""
        return self.file(rel, "#!/bin/sh\n" + body.strip() + "\n", mode)


@pytest.fixture
def web_root(tmp_path):
    root = tmp_path / "www"
    root.mkdir()
    os.chmod(root, 0o755)
    return WebRoot(root)


@pytest.fixture
def pipeline(web_root):
    """RequestProcessor wired to the `web_root` fixture, plus its LogDispatcher."""
    from wwebs.server.core.env_builder import EnvironmentBuilder
    from wwebs.server.services import (
        DirectoryConfigLoader,
        LogDispatcher,
        PathWalker,
        PipelineScheduler,
        ProcessInvoker,
        RequestProcessor,
        StageDiscovery,
    )

    loader = DirectoryConfigLoader(filename=".wwebs.yml", cache_enabled=False)
    invoker = ProcessInvoker(EnvironmentBuilder(), default_timeout=5.0)
    dispatcher = LogDispatcher()
    processor = RequestProcessor(
        PathWalker(web_root.root, loader),
        StageDiscovery(loader),
        PipelineScheduler(invoker, dispatcher),
    )
    return processor, dispatcher
