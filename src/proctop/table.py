"""Process table builder: one sampling cycle over all visible processes."""

from collections.abc import Iterable, Iterator
from types import MappingProxyType

import structlog

from proctop.counters import CounterReader
from proctop.cpu import utilization
from proctop.errors import (
    AggregateReadFailure,
    CounterParseError,
    CounterPermissionDenied,
    ProcessNotFound,
)
from proctop.models import CpuCounterSample, ProcessRecord, ProcessStat, SamplingState

log = structlog.get_logger()

# Failures that only concern one process; they never abort a tick.
SKIPPABLE_ERRORS = (ProcessNotFound, CounterParseError, CounterPermissionDenied)


def sort_records(records: Iterable[ProcessRecord]) -> tuple[ProcessRecord, ...]:
    """Order records by resident memory, largest first, then by pid."""
    return tuple(sorted(records, key=lambda r: (-r.memory_rss, r.pid)))


class ProcessTableBuilder:
    """
    Builds one snapshot and the replacement sampling state.

    Holds no state between calls; the caller owns the SamplingState and
    passes it in on every build.
    """

    def __init__(self, reader: CounterReader) -> None:
        self._reader = reader

    @property
    def reader(self) -> CounterReader:
        """Get the counter reader."""
        return self._reader

    def sample(
        self, state: SamplingState
    ) -> tuple[tuple[ProcessRecord, ...], SamplingState, bool]:
        """
        Run a full cycle: read the system total, then build the table.

        Returns:
            The ordered records, the replacement state, and whether the
            cycle was degraded by an unreadable system aggregate. A degraded
            cycle yields no records and keeps the previous state so the next
            good cycle computes deltas against real history.
        """
        try:
            system_jiffies = self._reader.read_system_jiffies()
            records, new_state = self.build(state, system_jiffies)
        except AggregateReadFailure as e:
            log.warning("aggregate_read_failed", error=str(e))
            return (), state, True
        return records, new_state, False

    def build(
        self, state: SamplingState, system_jiffies: int
    ) -> tuple[tuple[ProcessRecord, ...], SamplingState]:
        """
        Build the process table against a freshly read system total.

        Processes absent from this tick are not carried into the new state.

        Raises:
            AggregateReadFailure: If the process list itself is unreadable.
        """
        records: list[ProcessRecord] = []
        samples: dict[int, CpuCounterSample] = {}

        for stat in self._read_all(self._reader.list_pids()):
            cpu_percent = utilization(state.previous(stat.pid), stat.jiffies, system_jiffies)
            records.append(
                ProcessRecord(
                    pid=stat.pid,
                    name=stat.name,
                    state=stat.state,
                    ppid=stat.ppid,
                    memory_rss=self._reader.memory_bytes(stat),
                    cpu_percent=cpu_percent,
                )
            )
            samples[stat.pid] = CpuCounterSample(
                pid=stat.pid,
                process_jiffies=stat.jiffies,
                system_jiffies=system_jiffies,
            )

        new_state = SamplingState(
            samples=MappingProxyType(samples),
            system_jiffies=system_jiffies,
        )
        return sort_records(records), new_state

    def _read_all(self, pids: Iterable[int]) -> Iterator[ProcessStat]:
        """Yield every process that could be read, dropping the rest."""
        for pid in pids:
            try:
                yield self._reader.read_process(pid)
            except SKIPPABLE_ERRORS as e:
                log.debug("process_skipped", pid=pid, reason=type(e).__name__)
