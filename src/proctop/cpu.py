"""CPU utilization from two instants of cumulative counters."""

from proctop.models import CpuCounterSample


def utilization(
    prev: CpuCounterSample | None,
    process_jiffies: int,
    system_jiffies: int,
) -> float:
    """
    Compute a process's CPU share since its previous sample.

    The result is relative to one core's worth of system-wide time; it is not
    normalized per core. A decrease in either counter (PID reuse, counter
    reset) clamps to zero instead of going negative.

    Args:
        prev: Previous sample for the same pid, or None if newly observed.
        process_jiffies: Current user + kernel ticks of the process.
        system_jiffies: Current system-wide total ticks.

    Returns:
        Percentage, 0.0 when there is no history or no elapsed system time.
    """
    if prev is None:
        return 0.0

    delta_proc = max(process_jiffies - prev.process_jiffies, 0)
    delta_system = max(system_jiffies - prev.system_jiffies, 0)
    if delta_system == 0:
        return 0.0

    return 100.0 * delta_proc / delta_system
