"""Data models for proctop."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """Immutable row of one snapshot."""

    pid: int
    name: str
    state: str  # 'R', 'S', 'Z', 'D', etc.
    ppid: int
    memory_rss: int  # Bytes
    cpu_percent: float  # 0.0 - 100.0 * core_count


@dataclass(slots=True, frozen=True)
class CpuCounterSample:
    """Cumulative CPU counters of one process at one instant."""

    pid: int
    process_jiffies: int  # utime + stime since process start
    system_jiffies: int  # system total since boot, same instant


@dataclass(slots=True, frozen=True)
class ProcessStat:
    """Parsed fields of a per-process counter record."""

    pid: int
    name: str
    state: str
    ppid: int
    utime: int
    stime: int
    rss_pages: int

    @property
    def jiffies(self) -> int:
        """User plus kernel ticks consumed by the process."""
        return self.utime + self.stime


@dataclass(slots=True, frozen=True)
class SamplingState:
    """
    Counter history carried from one tick to the next.

    Holds only the most recent sample per process and the system total read
    at the start of the tick that produced it.
    """

    samples: Mapping[int, CpuCounterSample] = field(
        default_factory=lambda: MappingProxyType({})
    )
    system_jiffies: int = 0

    @classmethod
    def empty(cls) -> "SamplingState":
        """State before the first tick."""
        return cls()

    def previous(self, pid: int) -> CpuCounterSample | None:
        """Return the previous sample for a pid, if any."""
        return self.samples.get(pid)

    def __len__(self) -> int:
        return len(self.samples)


@dataclass(slots=True, frozen=True)
class Snapshot:
    """Complete ordered result of one sampling tick."""

    processes: tuple[ProcessRecord, ...]
    tick: int
    degraded: bool = False
