"""Tests for CommandRunner."""

import pytest

from stackweave.core.errors import CommandTimeoutError, ExternalToolError
from stackweave.core.vcs import CommandRunner


@pytest.fixture
def runner():
    return CommandRunner()


@pytest.mark.asyncio
async def test_run_captures_stdout(runner):
    """Test basic command execution."""
    result = await runner.run(["echo", "hello"])

    assert result.ok
    assert result.exit_code == 0
    assert result.stdout == "hello\n"
    assert result.stderr == ""
    assert result.command == ["echo", "hello"]


@pytest.mark.asyncio
async def test_run_in_cwd(runner, tmp_path):
    result = await runner.run(["pwd"], cwd=tmp_path)
    assert result.stdout.strip() == str(tmp_path.resolve())


@pytest.mark.asyncio
async def test_non_zero_exit_raises(runner):
    """Test command that fails with non-zero exit code."""
    with pytest.raises(ExternalToolError) as exc_info:
        await runner.run(["sh", "-c", "echo oops >&2; exit 3"])

    error = exc_info.value
    assert error.exit_code == 3
    assert error.command == ["sh", "-c", "echo oops >&2; exit 3"]
    assert "oops" in error.output
    assert "oops" in str(error)


@pytest.mark.asyncio
async def test_non_zero_exit_without_check(runner):
    result = await runner.run(["sh", "-c", "exit 42"], check=False)
    assert not result.ok
    assert result.exit_code == 42


@pytest.mark.asyncio
async def test_timeout_kills_process(runner):
    """Test that a long-running command is killed at the timeout."""
    with pytest.raises(CommandTimeoutError) as exc_info:
        await runner.run(["sleep", "5"], timeout=0.2)
    assert exc_info.value.timeout == 0.2
    assert exc_info.value.exit_code is None


@pytest.mark.asyncio
async def test_missing_binary_raises(runner):
    with pytest.raises(ExternalToolError) as exc_info:
        await runner.run(["stackweave-definitely-not-a-binary"])
    assert exc_info.value.exit_code is None


@pytest.mark.asyncio
async def test_stdin_input(runner):
    result = await runner.run(["cat"], input="from stdin")
    assert result.stdout == "from stdin"


@pytest.mark.asyncio
async def test_extra_environment():
    runner = CommandRunner(env={"STACKWEAVE_TEST_VALUE": "42"})
    result = await runner.run(["sh", "-c", "echo $STACKWEAVE_TEST_VALUE"])
    assert result.stdout.strip() == "42"


@pytest.mark.asyncio
async def test_combined_output(runner):
    result = await runner.run(["sh", "-c", "echo out; echo err >&2"])
    assert result.output == "out\nerr\n"


@pytest.mark.asyncio
async def test_interrupt_without_processes_is_noop(runner):
    await runner.interrupt()
