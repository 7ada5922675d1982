"""Tests for task executors."""

import pytest

from stackweave.core.execution import ExecutionContext, ExecutionOrchestrator
from stackweave.core.executors import (
    CommandTaskExecutor,
    MockTaskExecutor,
    TaskExecutor,
    build_prompt,
    interrupt_executor,
)
from stackweave.core.types import ExecutionMode, ExecutionTask, PlanStatus, Task, TaskState


def make_task(**kwargs):
    kwargs.setdefault("id", "task-a")
    return ExecutionTask(task=Task(**kwargs))


class TestMockExecutor:
    """Tests for MockTaskExecutor."""

    @pytest.mark.asyncio
    async def test_unlisted_tasks_succeed(self, tmp_path):
        executor = MockTaskExecutor()
        result = await executor.execute(make_task(), str(tmp_path), ExecutionMode.EXECUTE)
        assert result.success
        assert executor.calls == [("task-a", str(tmp_path))]

    @pytest.mark.asyncio
    async def test_scripted_sequence_last_repeats(self, tmp_path):
        executor = MockTaskExecutor(outcomes={"task-a": [False, True]})
        task = make_task()
        outcomes = [
            (await executor.execute(task, str(tmp_path), ExecutionMode.EXECUTE)).success
            for _ in range(3)
        ]
        assert outcomes == [False, True, True]
        assert executor.attempts("task-a") == 3

    @pytest.mark.asyncio
    async def test_failure_result(self, tmp_path):
        executor = MockTaskExecutor(outcomes={"task-a": False})
        result = await executor.execute(make_task(), str(tmp_path), ExecutionMode.EXECUTE)
        assert result.status == "failure"
        assert result.exit_code == 1
        assert result.error == "mock failure"

    @pytest.mark.asyncio
    async def test_write_files(self, tmp_path):
        executor = MockTaskExecutor(write_files=True)
        result = await executor.execute(
            make_task(title="Task A"), str(tmp_path), ExecutionMode.EXECUTE
        )
        assert result.files_changed == ["task-a.md"]
        assert (tmp_path / "task-a.md").read_text().startswith("# Task A")

    def test_satisfies_protocol(self):
        assert isinstance(MockTaskExecutor(), TaskExecutor)


class TestCommandExecutor:
    """Tests for CommandTaskExecutor."""

    def test_from_string_splits(self):
        executor = CommandTaskExecutor.from_string('agent -p "{prompt}" --id {task_id}')
        assert list(executor.command) == ["agent", "-p", "{prompt}", "--id", "{task_id}"]

    def test_render_placeholders(self):
        executor = CommandTaskExecutor(command=["agent", "{task_id}", "{title}", "{workdir}"])
        argv = executor.render(make_task(title="Do it"), "/wt")
        assert argv == ["agent", "task-a", "Do it", "/wt"]

    def test_render_leaves_other_braces_alone(self):
        executor = CommandTaskExecutor.from_string(
            """agent --settings '{"model": "fast"}' --name {task_id} {unknown}"""
        )
        argv = executor.render(make_task(), "/wt")
        assert argv == ["agent", "--settings", '{"model": "fast"}', "--name", "task-a", "{unknown}"]

    def test_render_does_not_expand_placeholders_inside_values(self):
        executor = CommandTaskExecutor(command=["agent", "{prompt}"])
        argv = executor.render(make_task(agent_prompt="print {task_id} and {}"), "/wt")
        assert argv == ["agent", "print {task_id} and {}"]

    @pytest.mark.asyncio
    async def test_command_with_inline_json_completes_run(self, tmp_path):
        executor = CommandTaskExecutor.from_string("""sh -c 'echo {"k": 1} {task_id}'""")
        result = await ExecutionOrchestrator(executor=executor).execute(
            [Task(id="task-a")], ExecutionContext(cwd=str(tmp_path))
        )
        assert result.status is PlanStatus.COMPLETED
        assert result.tasks[0].state is TaskState.COMPLETED
        assert "task-a" in result.tasks[0].output

    def test_empty_command_rejected(self):
        with pytest.raises(ValueError):
            CommandTaskExecutor(command=[])

    @pytest.mark.asyncio
    async def test_success(self, tmp_path):
        executor = CommandTaskExecutor(command=["sh", "-c", "echo running {task_id}"])
        result = await executor.execute(make_task(), str(tmp_path), ExecutionMode.EXECUTE)
        assert result.success
        assert result.exit_code == 0
        assert "running task-a" in result.output

    @pytest.mark.asyncio
    async def test_runs_in_workdir(self, tmp_path):
        executor = CommandTaskExecutor(command=["sh", "-c", "touch created.txt"])
        await executor.execute(make_task(), str(tmp_path), ExecutionMode.EXECUTE)
        assert (tmp_path / "created.txt").exists()

    @pytest.mark.asyncio
    async def test_failure(self, tmp_path):
        executor = CommandTaskExecutor(command=["sh", "-c", "echo bad >&2; exit 2"])
        result = await executor.execute(make_task(), str(tmp_path), ExecutionMode.EXECUTE)
        assert not result.success
        assert result.exit_code == 2
        assert "bad" in result.output
        assert result.error == "Agent exited with code 2"

    @pytest.mark.asyncio
    async def test_plan_mode_spawns_nothing(self, tmp_path):
        executor = CommandTaskExecutor(command=["stackweave-missing-agent", "{task_id}"])
        result = await executor.execute(make_task(), str(tmp_path), ExecutionMode.PLAN)
        assert result.success
        assert "stackweave-missing-agent task-a" in result.output

    @pytest.mark.asyncio
    async def test_interrupt_reaches_runner(self):
        await interrupt_executor(CommandTaskExecutor(command=["true"]))


def test_build_prompt_prefers_agent_prompt():
    task = make_task(description="desc", agent_prompt="do the thing", touches=("a.py",))
    prompt = build_prompt(task)
    assert prompt.startswith("do the thing")
    assert "- a.py" in prompt


def test_build_prompt_falls_back_to_description():
    assert build_prompt(make_task(description="desc")) == "desc"
