import asyncio

import pytest

from services.background_tasks import BackgroundTaskRunner, DiagnosticsSink


async def succeed(results):
    results.append("done")


async def fail():
    raise RuntimeError("disk full")


@pytest.mark.asyncio
async def test_submitted_work_runs_without_being_awaited(background):
    results = []

    background.submit("append", succeed(results))
    assert background.pending == 1
    await background.drain()

    assert results == ["done"]
    assert background.pending == 0
    assert background.diagnostics.total_failures == 0


@pytest.mark.asyncio
async def test_failures_reach_diagnostics(background, diagnostics):
    background.submit("access log append", fail())
    await background.drain()

    assert diagnostics.total_failures == 1
    record = diagnostics.recent()[0]
    assert record.operation == "access log append"
    assert record.error == "RuntimeError: disk full"
    assert record.to_dict()["operation"] == "access log append"


@pytest.mark.asyncio
async def test_drain_cancels_tasks_past_timeout(background, diagnostics):
    task = background.submit("slow", asyncio.sleep(10))

    await background.drain(timeout=0.01)
    await asyncio.gather(task, return_exceptions=True)

    assert task.cancelled()
    assert background.pending == 0
    assert diagnostics.total_failures == 1


def test_sink_keeps_bounded_history_newest_first():
    sink = DiagnosticsSink(max_records=2)
    for i in range(3):
        sink.record(f"op{i}", ValueError(str(i)))

    assert sink.total_failures == 3
    assert [r.operation for r in sink.recent()] == ["op2", "op1"]


@pytest.mark.asyncio
async def test_drain_with_nothing_pending_returns():
    await BackgroundTaskRunner(DiagnosticsSink()).drain()
