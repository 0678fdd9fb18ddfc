import pytest

from telebox_setup.errors import ExecutionError, SetupError, WorkflowAborted
from telebox_setup.workflow import DONE, FAILED, SKIPPED, TOLERATED, Step, WorkflowRunner


def make_steps(log, fail=None, tolerated=()):
    def action(name):
        def run():
            log.append(name)
            if name == fail:
                raise ExecutionError(f"{name} broke")

        return run

    return [
        Step(name, name.title(), action(name), tolerated=name in tolerated)
        for name in ("one", "two", "three")
    ]


def test_steps_run_in_order():
    log = []
    results = WorkflowRunner().run(make_steps(log))
    assert log == ["one", "two", "three"]
    assert [r.status for r in results] == [DONE, DONE, DONE]
    assert all(r.message == "" for r in results)


def test_fatal_failure_stops_the_run():
    log = []
    runner = WorkflowRunner()
    with pytest.raises(WorkflowAborted) as info:
        runner.run(make_steps(log, fail="two"))

    assert log == ["one", "two"]
    assert info.value.step == "two"
    assert info.value.position == 2
    assert info.value.total == 3
    assert isinstance(info.value.cause, ExecutionError)
    assert [r.status for r in runner.results] == [DONE, FAILED, SKIPPED]


def test_tolerated_failure_continues():
    log = []
    results = WorkflowRunner().run(make_steps(log, fail="two", tolerated={"two"}))
    assert log == ["one", "two", "three"]
    assert results[1].status == TOLERATED
    assert "two broke" in results[1].message


def test_failed_step_is_not_retried():
    calls = []

    def flaky():
        calls.append(1)
        raise SetupError("nope")

    with pytest.raises(WorkflowAborted):
        WorkflowRunner().run([Step("flaky", "Flaky", flaky)])
    assert calls == [1]


def test_os_errors_count_as_step_failures(tmp_path):
    def broken():
        (tmp_path / "missing" / "file").read_text()

    with pytest.raises(WorkflowAborted) as info:
        WorkflowRunner().run([Step("read", "Read", broken)])
    assert "FileNotFoundError" in str(info.value)


def test_elapsed_uses_clock():
    ticks = iter([0.0, 1.5, 2.0, 2.25])
    results = WorkflowRunner(clock=lambda: next(ticks)).run(
        [Step("a", "A", lambda: None), Step("b", "B", lambda: None)]
    )
    assert [r.elapsed for r in results] == [1.5, 0.25]
