import asyncio
import os

import pytest

from wwebs.server.core.env_builder import EnvironmentBuilder
from wwebs.server.core.exceptions import ProcessSpawnError, ProcessTimeoutError
from wwebs.server.models.directory_config import DirectoryConfig
from wwebs.server.models.request import Request
from wwebs.server.models.stage import StageFile, StageKind
from wwebs.server.services.process_invoker import ProcessInvoker


@pytest.fixture
def invoker():
    return ProcessInvoker(EnvironmentBuilder(), default_timeout=5.0)


def _request(**kwargs):
    defaults = dict(
        verb="POST",
        path="/a/script",
        headers={"x-token": "abc"},
        query={"name": "world"},
        body=b"request body",
    )
    defaults.update(kwargs)
    return Request(**defaults)


@pytest.mark.asyncio
async def test_stdout_is_body_and_stderr_is_control(web_root, invoker):
    script = web_root.script(
        "a/script",
        """
printf '{"ok":true}'
echo "status 201" >&2
echo "header Content-Type application/json" >&2
echo "log created" >&2
echo "just noise" >&2
""",
    )

    result = await invoker.invoke(script, _request())

    assert result.exit_code == 0
    assert result.stdout == b'{"ok":true}'
    assert result.status == 201
    assert result.headers == {"Content-Type": "application/json"}
    assert result.logs == ["created"]


@pytest.mark.asyncio
async def test_environment_and_stdin(web_root, invoker):
    script = web_root.script(
        "a/script",
        """
printf '%s|%s|%s|%s|%s|' "$VERB" "$REQUESTED" "$HEADER_X_TOKEN" "$QUERY_name" "${STATUS-unset}"
cat
""",
    )

    result = await invoker.invoke(script, _request())

    assert result.stdout == b"POST|/a/script|abc|world|unset|request body"


@pytest.mark.asyncio
async def test_response_side_invocation(web_root, invoker):
    script = web_root.script(
        "a/.res_transformer",
        """
printf '%s|%s|' "$STATUS" "$HEADER_CONTENT_TYPE"
cat
""",
    )

    result = await invoker.invoke(
        script,
        _request(),
        stdin=b"response body",
        status=404,
        headers={"Content-Type": "text/html"},
    )

    assert result.stdout == b"404|text/html|response body"


@pytest.mark.asyncio
async def test_extra_path_argument_and_cwd(web_root, invoker):
    script = web_root.script("app/run", 'printf "%s|%s" "$1" "$(basename "$PWD")"')

    result = await invoker.invoke(script, _request(), extra_path=["users", "42"])

    assert result.stdout == b"users/42|app"


@pytest.mark.asyncio
async def test_config_env_is_exported(web_root, invoker):
    script = web_root.script("run", 'printf "%s" "$SITE_NAME"')
    config = DirectoryConfig.model_validate({"env": {"SITE_NAME": "example"}})

    result = await invoker.invoke(script, _request(), config=config)

    assert result.stdout == b"example"


@pytest.mark.asyncio
async def test_nonzero_exit_is_reported(web_root, invoker):
    script = web_root.script("fail", "exit 3")

    result = await invoker.invoke(script, _request())

    assert result.exit_code == 3
    assert result.effective_status == 500


@pytest.mark.asyncio
async def test_program_ignoring_stdin(web_root, invoker):
    script = web_root.script("quiet", "echo done")

    result = await invoker.invoke(script, _request(body=b"x" * 1_000_000))

    assert result.exit_code == 0
    assert result.stdout == b"done\n"


@pytest.mark.asyncio
async def test_spawn_failure(web_root, invoker):
    not_executable = web_root.file("plain.txt", "hello", mode=0o644)

    with pytest.raises(ProcessSpawnError) as exc_info:
        await invoker.invoke(not_executable, _request())

    assert exc_info.value.context()["stage_kind"] == "content"


@pytest.mark.asyncio
async def test_timeout_kills_process(web_root):
    invoker = ProcessInvoker(EnvironmentBuilder(), default_timeout=0.5)
    script = web_root.script(".gatekeeper#2", "sleep 30")
    stage = StageFile(kind=StageKind.GATEKEEPER, depth=0, sequence=2, path=script)

    with pytest.raises(ProcessTimeoutError) as exc_info:
        await invoker.invoke(script, _request(), stage=stage)

    context = exc_info.value.context()
    assert context["stage_kind"] == "gatekeeper"
    assert context["depth"] == 0
    assert context["sequence"] == 2


@pytest.mark.asyncio
async def test_config_timeout_overrides_default(web_root, invoker):
    script = web_root.script("slow", "sleep 30")
    config = DirectoryConfig.model_validate({"execution": {"timeout": 0.3}})

    with pytest.raises(ProcessTimeoutError) as exc_info:
        await invoker.invoke(script, _request(), config=config)

    assert exc_info.value.timeout == 0.3


@pytest.mark.asyncio
async def test_cancellation_kills_child(web_root, invoker):
    pid_file = web_root.root / "pid"
    script = web_root.script("slow", f'echo $$ > "{pid_file}"\nexec sleep 30')

    task = asyncio.create_task(invoker.invoke(script, _request()))
    for _ in range(100):
        if pid_file.exists() and pid_file.read_text().strip():
            break
        await asyncio.sleep(0.05)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    pid = int(pid_file.read_text().strip())
    with pytest.raises(ProcessLookupError):
        os.kill(pid, 0)
