"""Counter reader for the Linux procfs counter files."""

from pathlib import Path

from proctop.errors import (
    AggregateReadFailure,
    CounterParseError,
    CounterPermissionDenied,
    ProcessNotFound,
)
from proctop.models import ProcessStat

DEFAULT_PROC_ROOT = "/proc"
DEFAULT_PAGE_SIZE = 4096

# Positions in /proc/<pid>/stat (1-based, see proc(5)), counted from the
# field right after the closing parenthesis of the comm field, which is field 3.
_FIRST_FIELD_AFTER_COMM = 3
_STATE = 3
_PPID = 4
_UTIME = 14
_STIME = 15
_RSS = 24


def _field(rest: list[str], position: int) -> str:
    return rest[position - _FIRST_FIELD_AFTER_COMM]


def parse_system_stat(text: str) -> int:
    """
    Return the sum of all CPU time fields on the aggregate ``cpu`` line.

    Raises:
        AggregateReadFailure: If the line is missing or malformed.
    """
    for line in text.splitlines():
        parts = line.split()
        if not parts or parts[0] != "cpu":
            continue
        if len(parts) < 2:
            raise AggregateReadFailure("aggregate cpu line has no counters")
        try:
            return sum(int(value) for value in parts[1:])
        except ValueError as e:
            raise AggregateReadFailure(f"non-numeric aggregate cpu counter: {e}") from e
    raise AggregateReadFailure("no aggregate cpu line")


def parse_process_stat(pid: int, text: str) -> ProcessStat:
    """
    Parse the text of ``/proc/<pid>/stat``.

    The command name may itself contain spaces and parentheses, so it spans
    from the first ``(`` to the right-most ``)``.

    Raises:
        CounterParseError: If the record is truncated or malformed.
    """
    source = f"/proc/{pid}/stat"
    lparen = text.find("(")
    rparen = text.rfind(")")
    if lparen == -1 or rparen < lparen:
        raise CounterParseError(source, "missing command name")

    name = text[lparen + 1 : rparen]
    rest = text[rparen + 1 :].split()
    needed = _RSS - _FIRST_FIELD_AFTER_COMM + 1
    if len(rest) < needed:
        raise CounterParseError(source, f"expected at least {needed} fields, got {len(rest)}")

    state = _field(rest, _STATE)
    if len(state) != 1:
        raise CounterParseError(source, f"invalid state {state!r}")

    try:
        ppid = int(_field(rest, _PPID))
        utime = int(_field(rest, _UTIME))
        stime = int(_field(rest, _STIME))
        rss_pages = int(_field(rest, _RSS))
    except ValueError as e:
        raise CounterParseError(source, str(e)) from e

    return ProcessStat(
        pid=pid,
        name=name,
        state=state,
        ppid=ppid,
        utime=utime,
        stime=stime,
        rss_pages=max(rss_pages, 0),
    )


class CounterReader:
    """
    Point-in-time reads of cumulative kernel counters.

    Every read touches one small file once; nothing is cached between calls.
    """

    def __init__(
        self,
        proc_root: str | Path = DEFAULT_PROC_ROOT,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        """
        Initialize the CounterReader.

        Args:
            proc_root: Root of the procfs tree. Tests point this at a fake tree.
            page_size: Bytes per page, used to convert resident set size.
        """
        self._root = Path(proc_root)
        self._page_size = page_size

    @property
    def proc_root(self) -> Path:
        """Get the procfs root."""
        return self._root

    @property
    def page_size(self) -> int:
        """Get the page size used for memory conversion."""
        return self._page_size

    def read_system_jiffies(self) -> int:
        """
        Read the system-wide cumulative CPU time.

        Raises:
            AggregateReadFailure: If the global statistics are unreadable.
        """
        try:
            text = (self._root / "stat").read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            raise AggregateReadFailure(f"cannot read {self._root / 'stat'}: {e}") from e
        return parse_system_stat(text)

    def list_pids(self) -> list[int]:
        """
        List the identifiers of all visible processes in ascending order.

        Raises:
            AggregateReadFailure: If the procfs root cannot be listed.
        """
        try:
            entries = [entry.name for entry in self._root.iterdir()]
        except OSError as e:
            raise AggregateReadFailure(f"cannot list {self._root}: {e}") from e
        return sorted(int(name) for name in entries if name.isdigit())

    def read_process(self, pid: int) -> ProcessStat:
        """
        Read the counter record of one process.

        Raises:
            ProcessNotFound: If the process has exited.
            CounterPermissionDenied: If the record is unreadable.
            CounterParseError: If the record is malformed.
        """
        path = self._root / str(pid) / "stat"
        try:
            raw = path.read_bytes()
        except (FileNotFoundError, ProcessLookupError) as e:
            raise ProcessNotFound(pid) from e
        except PermissionError as e:
            raise CounterPermissionDenied(pid) from e
        except OSError as e:
            raise CounterParseError(str(path), e.strerror or str(e)) from e

        return parse_process_stat(pid, raw.decode("utf-8", errors="replace"))

    def memory_bytes(self, stat: ProcessStat) -> int:
        """Convert a resident page count to bytes."""
        return stat.rss_pages * self._page_size
