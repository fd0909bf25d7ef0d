"""Sampling scheduler for proctop."""

import threading
import time
from collections.abc import Callable
from enum import Enum
from queue import Empty, Queue

import structlog

from proctop.config import Config
from proctop.counters import CounterReader
from proctop.models import SamplingState, Snapshot
from proctop.table import ProcessTableBuilder

log = structlog.get_logger()

MIN_REFRESH_INTERVAL = 0.1


class SchedulerState(Enum):
    """Lifecycle of the sampling scheduler."""

    IDLE = "idle"
    SAMPLING = "sampling"
    STOPPED = "stopped"


class InputEvent(Enum):
    """Input events seen by the control loop."""

    NONE = "none"
    QUIT = "quit"


class SamplingScheduler:
    """
    Produces one snapshot per refresh interval until told to quit.

    The timer and the input queue are multiplexed in a single control loop:
    the loop waits on the input queue for at most the time left until the next
    tick, bounded by the input poll timeout. Snapshots are pushed to a
    thread-safe Queue. The SamplingState is owned by the loop alone.
    """

    def __init__(
        self,
        update_queue: Queue[Snapshot],
        input_queue: Queue[InputEvent] | None = None,
        config: Config | None = None,
        builder: ProcessTableBuilder | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the SamplingScheduler.

        Args:
            update_queue: Thread-safe queue to push snapshots to.
            input_queue: Queue the presentation layer posts input events to.
            config: Application config. Defaults are used when omitted.
            builder: Process table builder. Built from config when omitted.
            clock: Monotonic clock, injectable for tests.
        """
        config = config or Config()
        self._queue = update_queue
        self._input_queue: Queue[InputEvent] = input_queue if input_queue is not None else Queue()
        self._builder = builder or ProcessTableBuilder(
            CounterReader(config.sampling.proc_root, config.sampling.page_size)
        )
        self._clock = clock
        self._refresh_interval = max(MIN_REFRESH_INTERVAL, config.sampling.refresh_interval)
        self._input_timeout = config.sampling.input_poll_timeout
        self._sampling_state = SamplingState.empty()
        self._state = SchedulerState.IDLE
        self._ticks = 0
        self._thread: threading.Thread | None = None

    @property
    def refresh_interval(self) -> float:
        """Get the refresh interval in seconds."""
        return self._refresh_interval

    @refresh_interval.setter
    def refresh_interval(self, value: float) -> None:
        """Set the refresh interval."""
        self._refresh_interval = max(MIN_REFRESH_INTERVAL, value)

    @property
    def state(self) -> SchedulerState:
        """Get the lifecycle state."""
        return self._state

    @property
    def ticks(self) -> int:
        """Number of completed ticks."""
        return self._ticks

    @property
    def input_queue(self) -> Queue[InputEvent]:
        """Queue accepting input events."""
        return self._input_queue

    @property
    def sampling_state(self) -> SamplingState:
        """Counter history as of the last completed tick."""
        return self._sampling_state

    @property
    def is_running(self) -> bool:
        """Check if the scheduler thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """
        Start the control loop on a daemon thread.

        Raises:
            RuntimeError: If the scheduler has already stopped.
        """
        if self._state is SchedulerState.STOPPED:
            raise RuntimeError("Scheduler has stopped and cannot be restarted")
        if self.is_running:
            return

        self._state = SchedulerState.SAMPLING
        self._thread = threading.Thread(
            target=self.run,
            daemon=True,
            name="SamplingScheduler",
        )
        self._thread.start()

    def request_stop(self) -> None:
        """Post quit to the control loop without waiting for it."""
        if self._thread is None:
            self._state = SchedulerState.STOPPED
            return
        self._input_queue.put(InputEvent.QUIT)

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Ask the control loop to quit and wait for it.

        If the thread is still alive after the timeout, the reference is kept
        so that start() cannot spawn a second loop.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        thread = self._thread
        self.request_stop()
        if thread is None:
            return

        thread.join(timeout=timeout)
        if thread.is_alive():
            log.warning("sampling_stop_timed_out", timeout=timeout)
            return
        self._thread = None

    def run(self) -> None:
        """Run the control loop in the calling thread until quit."""
        if self._state is SchedulerState.STOPPED:
            return

        self._state = SchedulerState.SAMPLING
        log.info("sampling_started", interval=self._refresh_interval)

        next_tick = self._clock()
        while self._state is SchedulerState.SAMPLING:
            remaining = next_tick - self._clock()
            if remaining <= 0:
                self._run_tick()
                # Scheduled from completion: a slow tick never causes a burst.
                next_tick = self._clock() + self._refresh_interval
                continue

            if self._poll_input(min(remaining, self._input_timeout)) is InputEvent.QUIT:
                self._state = SchedulerState.STOPPED

        log.info("sampling_stopped", ticks=self._ticks)

    def tick(self) -> Snapshot:
        """Perform one sampling cycle and swap in the new state."""
        records, new_state, degraded = self._builder.sample(self._sampling_state)
        self._sampling_state = new_state
        self._ticks += 1
        return Snapshot(processes=records, tick=self._ticks, degraded=degraded)

    def _run_tick(self) -> None:
        try:
            snapshot = self.tick()
        except Exception:
            log.exception("tick_failed", tick=self._ticks + 1)
            return
        self._queue.put(snapshot)

    def _poll_input(self, timeout: float) -> InputEvent:
        try:
            return self._input_queue.get(timeout=timeout)
        except Empty:
            return InputEvent.NONE
