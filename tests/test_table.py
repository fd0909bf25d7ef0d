"""Tests for the process table builder."""

import pytest

from conftest import FakeProc
from proctop.counters import CounterReader
from proctop.errors import AggregateReadFailure, CounterPermissionDenied
from proctop.models import CpuCounterSample, ProcessRecord, ProcessStat, SamplingState
from proctop.table import ProcessTableBuilder, sort_records


@pytest.fixture
def builder(fake_proc: FakeProc) -> ProcessTableBuilder:
    return ProcessTableBuilder(CounterReader(fake_proc.root))


def record(pid: int, memory_rss: int) -> ProcessRecord:
    return ProcessRecord(
        pid=pid, name=f"p{pid}", state="S", ppid=1, memory_rss=memory_rss, cpu_percent=0.0
    )


class TestSortRecords:
    """Tests for presentation ordering."""

    def test_descending_memory(self):
        """Test larger resident memory sorts first."""
        ordered = sort_records([record(1, 10), record(2, 30), record(3, 20)])
        assert [r.pid for r in ordered] == [2, 3, 1]

    def test_ties_broken_by_pid(self):
        """Test equal memory falls back to ascending pid."""
        ordered = sort_records([record(9, 10), record(4, 10), record(7, 10)])
        assert [r.pid for r in ordered] == [4, 7, 9]


class TestBuild:
    """Tests for ProcessTableBuilder.build."""

    def test_scenario_existing_and_new_process(self, fake_proc: FakeProc, builder):
        """Test a seen process gets its share and an unseen one gets 0.0."""
        fake_proc.add_process(100, name="a", utime=40, stime=30, rss=10)
        fake_proc.add_process(200, name="b", utime=5, stime=0, rss=20)
        state = SamplingState(
            samples={100: CpuCounterSample(pid=100, process_jiffies=50, system_jiffies=1000)},
            system_jiffies=1000,
        )

        records, new_state = builder.build(state, 1100)

        by_pid = {r.pid: r for r in records}
        assert by_pid[100].cpu_percent == 20.0
        assert by_pid[200].cpu_percent == 0.0
        assert new_state.system_jiffies == 1100
        assert new_state.previous(100) == CpuCounterSample(100, 70, 1100)
        assert new_state.previous(200) == CpuCounterSample(200, 5, 1100)

    def test_records_carry_descriptive_fields(self, fake_proc: FakeProc, builder):
        """Test name, state, ppid and memory bytes are filled in."""
        fake_proc.add_process(42, name="my proc", state="R", ppid=7, rss=3)

        records, _ = builder.build(SamplingState.empty(), 10)

        assert records == (
            ProcessRecord(
                pid=42, name="my proc", state="R", ppid=7, memory_rss=3 * 4096, cpu_percent=0.0
            ),
        )

    def test_malformed_process_is_skipped(self, fake_proc: FakeProc, builder):
        """Test a malformed record is omitted and the rest are kept in order."""
        fake_proc.add_process(1, rss=5)
        fake_proc.write_raw(2, "2 (broken) S 1 2\n")
        fake_proc.add_process(3, rss=50)
        fake_proc.add_process(4, rss=20)

        records, new_state = builder.build(SamplingState.empty(), 100)

        assert [r.pid for r in records] == [3, 4, 1]
        assert new_state.previous(2) is None
        assert len(new_state) == 3

    def test_empty_stat_file_is_skipped(self, fake_proc: FakeProc, builder):
        """Test an empty record is treated as malformed."""
        fake_proc.write_raw(5, "")
        fake_proc.add_process(6)

        records, _ = builder.build(SamplingState.empty(), 100)

        assert [r.pid for r in records] == [6]

    def test_vanished_process_is_skipped(self, fake_proc: FakeProc):
        """Test a process that exits between enumeration and read is dropped."""
        fake_proc.add_process(1)
        fake_proc.add_process(2)

        class VanishingReader(CounterReader):
            def list_pids(self) -> list[int]:
                pids = super().list_pids()
                fake_proc.remove(2)
                return pids

        builder = ProcessTableBuilder(VanishingReader(fake_proc.root))
        records, _ = builder.build(SamplingState.empty(), 100)

        assert [r.pid for r in records] == [1]

    def test_unreadable_process_is_skipped(self, fake_proc: FakeProc):
        """Test a process whose counters are not readable is dropped."""
        fake_proc.add_process(1, rss=5)
        fake_proc.add_process(2, rss=40)
        fake_proc.add_process(3, rss=20)

        class DeniedReader(CounterReader):
            def read_process(self, pid: int) -> ProcessStat:
                if pid == 2:
                    raise CounterPermissionDenied(pid)
                return super().read_process(pid)

        builder = ProcessTableBuilder(DeniedReader(fake_proc.root))
        records, new_state = builder.build(SamplingState.empty(), 100)

        assert [r.pid for r in records] == [3, 1]
        assert new_state.previous(2) is None
        assert len(new_state) == 2

    def test_exited_processes_are_pruned(self, fake_proc: FakeProc, builder):
        """Test history for processes gone this tick is not carried forward."""
        fake_proc.add_process(1)
        fake_proc.add_process(2)
        _, state = builder.build(SamplingState.empty(), 100)
        assert state.previous(2) is not None

        fake_proc.remove(2)
        _, state = builder.build(state, 200)

        assert state.previous(2) is None
        assert state.previous(1) is not None

    def test_pid_reuse_clamps_to_zero(self, fake_proc: FakeProc, builder):
        """Test a younger process reusing a pid reports 0.0, not a negative value."""
        fake_proc.add_process(7, utime=900)
        _, state = builder.build(SamplingState.empty(), 1000)

        fake_proc.add_process(7, utime=3)
        records, _ = builder.build(state, 1100)

        assert records[0].cpu_percent == 0.0

    def test_unchanged_counters_repeat_identically(self, fake_proc: FakeProc, builder):
        """Test two ticks with no counter change give identical zero results."""
        fake_proc.add_process(1, utime=10, rss=1)
        fake_proc.add_process(2, utime=20, rss=1)
        fake_proc.add_process(3, utime=30, rss=9)
        _, state = builder.build(SamplingState.empty(), 500)

        first, state = builder.build(state, 500)
        second, _ = builder.build(state, 500)

        assert first == second
        assert [r.cpu_percent for r in first] == [0.0, 0.0, 0.0]
        assert [r.pid for r in first] == [3, 1, 2]


class TestSample:
    """Tests for the full cycle including the system aggregate."""

    def test_reads_system_total(self, fake_proc: FakeProc, builder):
        """Test the aggregate is read before building."""
        fake_proc.set_system_total(1000)
        fake_proc.add_process(1, utime=50)
        _, state, degraded = builder.sample(SamplingState.empty())
        assert degraded is False
        assert state.system_jiffies == 1000

        fake_proc.set_system_total(1100)
        fake_proc.add_process(1, utime=70)
        records, state, degraded = builder.sample(state)

        assert degraded is False
        assert records[0].cpu_percent == 20.0
        assert state.system_jiffies == 1100

    def test_aggregate_failure_degrades(self, fake_proc: FakeProc, builder):
        """Test an unreadable aggregate yields an empty snapshot and keeps history."""
        fake_proc.set_system_total(1000)
        fake_proc.add_process(1, utime=50)
        _, state, _ = builder.sample(SamplingState.empty())

        (fake_proc.root / "stat").write_text("garbage\n")
        records, degraded_state, degraded = builder.sample(state)

        assert records == ()
        assert degraded is True
        assert degraded_state is state
        assert degraded_state.system_jiffies == 1000

        fake_proc.set_system_total(1100)
        fake_proc.add_process(1, utime=70)
        records, _, degraded = builder.sample(degraded_state)

        assert degraded is False
        assert records[0].cpu_percent == 20.0

    def test_unlistable_root_degrades(self, tmp_path):
        """Test a missing procfs root degrades instead of raising."""
        builder = ProcessTableBuilder(CounterReader(tmp_path / "missing"))

        empty = SamplingState.empty()
        records, state, degraded = builder.sample(empty)

        assert records == ()
        assert degraded is True
        assert state is empty

    def test_build_propagates_unlistable_root(self, tmp_path):
        """Test build() leaves aggregate failures to its caller."""
        builder = ProcessTableBuilder(CounterReader(tmp_path / "missing"))

        with pytest.raises(AggregateReadFailure):
            builder.build(SamplingState.empty(), 100)
