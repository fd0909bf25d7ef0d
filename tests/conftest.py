"""Shared test fixtures for proctop."""

from pathlib import Path

import pytest

from proctop.config import Config, SamplingConfig


def make_stat_line(
    pid: int,
    name: str = "proc",
    state: str = "S",
    ppid: int = 1,
    utime: int = 0,
    stime: int = 0,
    rss: int = 0,
) -> str:
    """Build a /proc/<pid>/stat line with the given counters."""
    return (
        f"{pid} ({name}) {state} {ppid} {pid} {pid} 0 -1 4194560 100 0 0 0 "
        f"{utime} {stime} 0 0 20 0 1 0 100 1000000 {rss} "
        f"18446744073709551615 1 1 0 0 0 0 0 0 0 0 0 0 17 0 0 0 0 0 0\n"
    )


class FakeProc:
    """A minimal procfs tree on disk."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)
        self.set_system_total(0)

    def set_system_total(self, total: int) -> None:
        """Write an aggregate cpu line whose fields sum to total."""
        (self.root / "stat").write_text(
            f"cpu  {total} 0 0 0 0 0 0 0 0 0\n"
            f"cpu0 {total} 0 0 0 0 0 0 0 0 0\n"
            "intr 12345 0 0\n"
            "ctxt 67890\n"
        )

    def add_process(self, pid: int, **fields) -> None:
        """Create or update a process entry."""
        self.write_raw(pid, make_stat_line(pid, **fields))

    def write_raw(self, pid: int, text: str) -> None:
        """Write an arbitrary stat file for a pid."""
        proc_dir = self.root / str(pid)
        proc_dir.mkdir(exist_ok=True)
        (proc_dir / "stat").write_text(text)

    def remove(self, pid: int) -> None:
        """Make a process disappear."""
        proc_dir = self.root / str(pid)
        (proc_dir / "stat").unlink()
        proc_dir.rmdir()


@pytest.fixture
def fake_proc(tmp_path: Path) -> FakeProc:
    """An empty fake procfs tree."""
    return FakeProc(tmp_path / "proc")


@pytest.fixture
def fake_config(fake_proc: FakeProc) -> Config:
    """Config sampling the fake procfs tree on a short interval."""
    return Config(
        sampling=SamplingConfig(
            refresh_interval=0.1,
            input_poll_timeout=0.02,
            proc_root=str(fake_proc.root),
        )
    )
