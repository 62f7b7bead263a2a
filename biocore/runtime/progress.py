import logging
import time
from typing import Optional

from tqdm import tqdm

logger = logging.getLogger(__name__)


class ProgressTracker:
    """
    Step counter shared by the enrollment and comparison pipelines.

    Tracks the current and total number of steps for one pass and renders a tqdm
    status bar unless the owning context is quiet.
    """

    def __init__(self, quiet: bool = False, parallelism: int = 1):
        """
        Initialize the tracker.

        Args:
            quiet: Suppress the status bar and summary lines
            parallelism: Worker count used to normalise throughput
        """
        self.quiet = quiet
        self.parallelism = parallelism
        self.current_step = 0.0
        self.total_steps = 0.0
        self.start_time: Optional[float] = None
        self._bar: Optional[tqdm] = None

    def start(self, total_steps: float, desc: str = "") -> None:
        """Reset the counters and start timing a new pass."""
        self.close()
        self.current_step = 0.0
        self.total_steps = float(total_steps)
        self.start_time = time.time()
        self._bar = tqdm(
            total=self.total_steps,
            desc=desc,
            unit="tmpl",
            disable=self.quiet,
            leave=False,
        )

    def advance(self, steps: float) -> None:
        self.current_step += steps
        if self._bar is not None:
            self._bar.update(steps)

    def print_status(self) -> None:
        """Refresh the status bar with the current throughput."""
        if self._bar is None or self.quiet:
            return
        self._bar.set_postfix(speed=f"{self.speed():.1e}", refresh=True)

    def elapsed(self) -> float:
        """Seconds since ``start``."""
        if self.start_time is None:
            return 0.0
        return time.time() - self.start_time

    def speed(self) -> float:
        """Steps per second per worker over the current pass."""
        elapsed = self.elapsed()
        if elapsed <= 0:
            return 0.0
        return self.total_steps / elapsed / max(1, abs(self.parallelism))

    def should_report(self) -> bool:
        return not self.quiet and self.total_steps > 1

    def close(self) -> None:
        if self._bar is not None:
            self._bar.close()
            self._bar = None

    def finish(self) -> None:
        """Close the bar and reset the step total."""
        self.close()
        self.total_steps = 0.0
