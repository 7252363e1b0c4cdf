"""Static work partitioning and a shared progress counter."""

import logging
import threading

from tqdm import tqdm

logger = logging.getLogger(__name__)


def partition_ranges(count: int, workers: int) -> list:
    """Split ``[0, count)`` into *workers* contiguous ``(begin, end)`` ranges.

    Range sizes differ by at most one; the first ``count % workers`` ranges
    take the extra item.  With more workers than items the trailing ranges
    are empty.
    """
    if workers < 1:
        raise ValueError(f"worker count must be positive, got {workers}")
    if count < 0:
        raise ValueError(f"item count must not be negative, got {count}")
    base, extra = divmod(count, workers)
    ranges = []
    begin = 0
    for i in range(workers):
        end = begin + base + (1 if i < extra else 0)
        ranges.append((begin, end))
        begin = end
    return ranges


class ProgressCounter:
    """Thread-safe count of finished items, reported to tqdm and a callback.

    Only progress reporting reads it; results never depend on its value.
    """

    def __init__(self, total: int, desc: str = "", progress_callback=None,
                 pct_range=(0.0, 100.0), disable_bar: bool = False):
        self.total = int(total)
        self._value = 0
        self._lock = threading.Lock()
        self._callback = progress_callback
        self._desc = desc
        self._lo, self._hi = pct_range
        self._bar = tqdm(total=self.total, desc=desc, disable=disable_bar, leave=False)

    @property
    def value(self) -> int:
        with self._lock:
            return self._value

    def increment(self, n: int = 1) -> int:
        with self._lock:
            self._value += n
            value = self._value
            self._bar.update(n)
            if self._callback:
                frac = value / self.total if self.total else 1.0
                self._callback(self._lo + (self._hi - self._lo) * frac,
                               f"{self._desc} {value}/{self.total}")
        return value

    def close(self):
        self._bar.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
