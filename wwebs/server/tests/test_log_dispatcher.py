import asyncio
import logging
from pathlib import Path

import pytest

from wwebs.server.models.stage import StageFile, StageKind
from wwebs.server.services.log_dispatcher import LogDispatcher


def _logger_stage(depth, name=".logger"):
    return StageFile(kind=StageKind.LOGGER, depth=depth, path=Path(f"/www/{depth}/{name}"))


@pytest.mark.asyncio
async def test_stages_run_in_order_in_background():
    dispatcher = LogDispatcher()
    seen = []
    release = asyncio.Event()

    async def run(stage):
        await release.wait()
        seen.append(stage.depth)

    dispatcher.dispatch([_logger_stage(2), _logger_stage(0)], run)

    assert dispatcher.pending == 1
    assert seen == []

    release.set()
    await dispatcher.drain(timeout=1)

    assert seen == [2, 0]
    assert dispatcher.pending == 0


@pytest.mark.asyncio
async def test_failure_is_logged_and_later_stages_still_run(caplog):
    dispatcher = LogDispatcher()
    seen = []

    async def run(stage):
        if stage.depth == 1:
            raise RuntimeError("logger crashed")
        seen.append(stage.depth)

    with caplog.at_level(logging.WARNING, logger="wwebs.log_dispatcher"):
        dispatcher.dispatch([_logger_stage(1), _logger_stage(0)], run)
        await dispatcher.drain(timeout=1)

    assert seen == [0]
    assert "logger crashed" in caplog.text


@pytest.mark.asyncio
async def test_empty_dispatch_is_noop():
    dispatcher = LogDispatcher()

    dispatcher.dispatch([], None)

    assert dispatcher.pending == 0
    await dispatcher.drain()


@pytest.mark.asyncio
async def test_drain_cancels_after_timeout():
    dispatcher = LogDispatcher()
    cancelled = asyncio.Event()

    async def run(stage):
        try:
            await asyncio.sleep(30)
        except asyncio.CancelledError:
            cancelled.set()
            raise

    dispatcher.dispatch([_logger_stage(0)], run)
    await asyncio.sleep(0)
    await dispatcher.drain(timeout=0.1)

    assert cancelled.is_set()
