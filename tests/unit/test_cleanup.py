"""Unit tests for deferred cleanup."""

import asyncio
from pathlib import Path

import pytest

from deployer.core.cleanup import CleanupScheduler


def _make_dir(path: Path) -> Path:
    path.mkdir(parents=True)
    (path / "file.txt").write_text("data")
    return path


class TestCleanupScheduler:
    """Tests for CleanupScheduler."""

    @pytest.mark.asyncio
    async def test_removes_after_grace_period(self, tmp_path: Path):
        scheduler = CleanupScheduler(grace_seconds=0.01)
        target = _make_dir(tmp_path / "work")

        task = scheduler.schedule("demo", target)
        assert target.exists()
        await task

        assert not target.exists()
        assert scheduler.pending == {}

    @pytest.mark.asyncio
    async def test_reschedule_removes_superseded_directory(self, tmp_path: Path):
        scheduler = CleanupScheduler(grace_seconds=60)
        first = _make_dir(tmp_path / "demo-1")
        second = _make_dir(tmp_path / "demo-2")

        scheduler.schedule("demo", first)
        scheduler.schedule("demo", second)

        assert scheduler.pending == {"demo": second}
        assert scheduler.removing == [first]
        await scheduler.flush()

        assert not first.exists()
        assert not second.exists()
        assert scheduler.removing == []

    @pytest.mark.asyncio
    async def test_superseded_removal_does_not_block_scheduling(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ):
        removed: list[Path] = []
        monkeypatch.setattr(
            "deployer.core.cleanup._remove_tree", lambda path: removed.append(path)
        )
        scheduler = CleanupScheduler(grace_seconds=60)
        first = _make_dir(tmp_path / "demo-1")
        second = _make_dir(tmp_path / "demo-2")

        scheduler.schedule("demo", first)
        scheduler.schedule("demo", second)

        assert removed == []
        assert first.exists()
        scheduler.cancel("demo")
        await scheduler.flush()
        assert removed == [first]

    @pytest.mark.asyncio
    async def test_cancel_keeps_directory(self, tmp_path: Path):
        scheduler = CleanupScheduler(grace_seconds=0.01)
        target = _make_dir(tmp_path / "work")

        scheduler.schedule("demo", target)
        assert scheduler.cancel("demo") is True
        await asyncio.sleep(0.05)

        assert target.exists()
        assert scheduler.cancel("demo") is False

    @pytest.mark.asyncio
    async def test_flush_removes_everything_now(self, tmp_path: Path):
        scheduler = CleanupScheduler(grace_seconds=60)
        a = _make_dir(tmp_path / "a")
        b = _make_dir(tmp_path / "b")
        scheduler.schedule("a", a)
        scheduler.schedule("b", b)

        await scheduler.flush()

        assert not a.exists()
        assert not b.exists()
        assert scheduler.pending == {}

    @pytest.mark.asyncio
    async def test_missing_directory_is_ignored(self, tmp_path: Path):
        scheduler = CleanupScheduler(grace_seconds=0)

        await scheduler.schedule("gone", tmp_path / "never-created")

        assert scheduler.pending == {}
