"""Tests for mdpreview.reactive.rebuild — single-flight rebuilds."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

from mdpreview._errors import RebuildError
from mdpreview.observability import EventLog, RebuildFinished, StackCollector
from mdpreview.reactive.rebuild import RebuildCoordinator, RebuildState, SubprocessRebuild

from tests.conftest import StubRebuild


# ---------------------------------------------------------------------------
# RebuildCoordinator
# ---------------------------------------------------------------------------


class TestSingleFlight:
    """At most one rebuild runs; overlapping requests are dropped."""

    @pytest.mark.asyncio
    async def test_starts_idle(self) -> None:
        coordinator = RebuildCoordinator(StubRebuild())
        assert coordinator.state is RebuildState.IDLE
        assert not coordinator.is_running

    @pytest.mark.asyncio
    async def test_overlapping_requests_run_once(self) -> None:
        operation = StubRebuild()
        coordinator = RebuildCoordinator(operation)

        first = coordinator.rebuild()
        second = coordinator.rebuild()
        third = coordinator.rebuild()

        assert first is not None
        assert second is None
        assert third is None
        assert coordinator.is_running

        operation.release.set()
        assert await first is True

        assert operation.calls == 1
        assert operation.max_active == 1
        assert coordinator.state is RebuildState.IDLE

    @pytest.mark.asyncio
    async def test_skip_is_logged(self, capsys: pytest.CaptureFixture[str]) -> None:
        operation = StubRebuild()
        coordinator = RebuildCoordinator(operation)
        task = coordinator.rebuild()
        coordinator.rebuild()

        operation.release.set()
        await task  # type: ignore[misc]

        assert "Rebuild already in progress, skipping..." in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_new_request_after_completion_runs(self) -> None:
        operation = StubRebuild()
        operation.release.set()
        coordinator = RebuildCoordinator(operation)

        await coordinator.rebuild()  # type: ignore[misc]
        await coordinator.rebuild()  # type: ignore[misc]

        assert operation.calls == 2


class TestOutcomes:
    """on_success fires only on success; state always returns to idle."""

    @pytest.mark.asyncio
    async def test_success_calls_on_success_once(self) -> None:
        operation = StubRebuild(result=True)
        operation.release.set()
        coordinator = RebuildCoordinator(operation)
        calls: list[str] = []

        ok = await coordinator.rebuild(lambda: calls.append("reload"))  # type: ignore[misc]

        assert ok is True
        assert calls == ["reload"]
        assert coordinator.state is RebuildState.IDLE

    @pytest.mark.asyncio
    async def test_async_on_success_is_awaited(self) -> None:
        operation = StubRebuild()
        operation.release.set()
        coordinator = RebuildCoordinator(operation)
        calls: list[str] = []

        async def _on_success() -> None:
            await asyncio.sleep(0)
            calls.append("reload")

        await coordinator.rebuild(_on_success)  # type: ignore[misc]
        assert calls == ["reload"]

    @pytest.mark.asyncio
    async def test_failure_skips_on_success(self) -> None:
        operation = StubRebuild(result=False)
        operation.release.set()
        coordinator = RebuildCoordinator(operation)
        calls: list[str] = []

        ok = await coordinator.rebuild(lambda: calls.append("reload"))  # type: ignore[misc]

        assert ok is False
        assert calls == []
        assert coordinator.state is RebuildState.IDLE

    @pytest.mark.asyncio
    async def test_exception_is_contained(self, capsys: pytest.CaptureFixture[str]) -> None:
        operation = StubRebuild(error=RuntimeError("compiler exploded"))
        operation.release.set()
        coordinator = RebuildCoordinator(operation)
        calls: list[str] = []

        ok = await coordinator.rebuild(lambda: calls.append("reload"))  # type: ignore[misc]

        assert ok is False
        assert calls == []
        assert coordinator.state is RebuildState.IDLE
        assert "compiler exploded" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_on_success_error_is_contained(self) -> None:
        operation = StubRebuild()
        operation.release.set()
        coordinator = RebuildCoordinator(operation)

        def _boom() -> None:
            raise RuntimeError("broadcast failed")

        assert await coordinator.rebuild(_boom) is True  # type: ignore[misc]
        assert coordinator.state is RebuildState.IDLE

    @pytest.mark.asyncio
    async def test_outcomes_recorded(self) -> None:
        operation = StubRebuild()
        collector = StackCollector(EventLog())
        coordinator = RebuildCoordinator(operation, collector=collector)

        task = coordinator.rebuild(trigger="src/app.py")
        coordinator.rebuild(trigger="src/other.py")
        operation.release.set()
        await task  # type: ignore[misc]

        outcomes = [e.outcome for e in collector.log.query(event_type=RebuildFinished)]
        assert outcomes == ["success", "skipped"]  # most recent first


# ---------------------------------------------------------------------------
# SubprocessRebuild
# ---------------------------------------------------------------------------


class TestSubprocessRebuild:
    """Exit code 0 is success, anything else is failure."""

    def test_empty_command_rejected(self) -> None:
        with pytest.raises(RebuildError, match="empty"):
            SubprocessRebuild(())

    @pytest.mark.asyncio
    async def test_exit_zero_is_success(self, tmp_path: Path) -> None:
        rebuild = SubprocessRebuild((sys.executable, "-c", "print('built')"), cwd=tmp_path)
        assert await rebuild() is True

    @pytest.mark.asyncio
    async def test_nonzero_exit_is_failure(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str],
    ) -> None:
        rebuild = SubprocessRebuild((sys.executable, "-c", "raise SystemExit(2)"), cwd=tmp_path)
        assert await rebuild() is False
        assert "failed with code 2" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_output_forwarded_to_stderr(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str],
    ) -> None:
        rebuild = SubprocessRebuild((sys.executable, "-c", "print('compiling 3 files')"))
        await rebuild()
        assert "compiling 3 files" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_missing_program_raises(self, tmp_path: Path) -> None:
        rebuild = SubprocessRebuild((str(tmp_path / "no-such-compiler"),))
        with pytest.raises(RebuildError, match="Cannot start"):
            await rebuild()

    @pytest.mark.asyncio
    async def test_missing_program_through_coordinator_is_failure(self, tmp_path: Path) -> None:
        coordinator = RebuildCoordinator(SubprocessRebuild((str(tmp_path / "nope"),)))
        calls: list[str] = []
        ok = await coordinator.rebuild(lambda: calls.append("reload"))  # type: ignore[misc]
        assert ok is False
        assert calls == []
        assert not coordinator.is_running

    @pytest.mark.asyncio
    async def test_timeout_is_failure(self, tmp_path: Path) -> None:
        rebuild = SubprocessRebuild(
            (sys.executable, "-c", "import time; time.sleep(10)"), timeout=0.2,
        )
        assert await rebuild() is False
