"""
Weaver Scan Statistics

Stats surface for a running Framework with:
- Request/response counters read from the shared requester
- Exponential Moving Average (EMA) of the audit rate for the ETA
- Per-window "current" response timings
- Human-readable time formatting
"""

import time
import threading
from typing import Optional, Dict, Any

# Exact keys of Framework.stats()
STATS_KEYS = (
    'requests', 'responses', 'time_out_count', 'time', 'avg',
    'sitemap_size', 'auditmap_size', 'progress',
    'curr_res_time', 'curr_res_cnt', 'curr_avg', 'average_res_time',
    'max_concurrency', 'current_page', 'eta',
)


class ScanStats:
    """
    Timing and progress bookkeeping for one scan.

    Uses Exponential Moving Average (EMA) to smooth the audit rate:
    - More responsive to recent changes
    - Less jumpy than simple average
    """

    # EMA smoothing factor (0.3 = 30% weight to new value, 70% to history)
    EMA_ALPHA = 0.3

    def __init__(self):
        self._lock = threading.Lock()
        self.reset()

    def reset(self):
        with self._lock:
            self.started_at: Optional[float] = None
            self.finished_at: Optional[float] = None
            self.current_page = ''
            self._ema_rate = 0.0
            self._last_update_time = 0.0
            self._last_audited = 0

    def start(self):
        """Start the scan timer."""
        with self._lock:
            self.started_at = time.time()
            self.finished_at = None
            self._last_update_time = self.started_at

    def finish(self):
        with self._lock:
            self.finished_at = time.time()

    def page_audited(self, url: str, audited: int):
        """
        Record that a page has been audited.

        Args:
            url: URL of the page
            audited: Total number of pages audited so far
        """
        with self._lock:
            self.current_page = url

            now = time.time()
            time_delta = now - self._last_update_time
            if time_delta > 0 and audited > self._last_audited:
                current_rate = (audited - self._last_audited) / time_delta
                if self._ema_rate == 0:
                    self._ema_rate = current_rate
                else:
                    self._ema_rate = (self.EMA_ALPHA * current_rate +
                                      (1 - self.EMA_ALPHA) * self._ema_rate)

            self._last_update_time = now
            self._last_audited = audited

    @property
    def elapsed_seconds(self) -> float:
        if self.started_at is None:
            return 0.0
        end = self.finished_at or time.time()
        return end - self.started_at

    def remaining_seconds(self, pending: int) -> float:
        """Estimated seconds to audit the pending pages at the EMA rate."""
        with self._lock:
            if pending <= 0 or self._ema_rate == 0:
                return 0.0
            return pending / self._ema_rate

    def snapshot(self, requester, sitemap_size: int, auditmap_size: int,
                 pending: int, done: bool = False) -> Dict[str, Any]:
        """
        Build the stats dictionary.

        Args:
            requester: The shared AsyncRequester
            sitemap_size: URLs the Spider has visited
            auditmap_size: Pages audited so far
            pending: Pages and URLs still queued for audit
            done: Whether the scan has finished

        Returns:
            Dictionary with exactly the STATS_KEYS keys
        """
        counters = requester.get_stats()
        elapsed = self.elapsed_seconds
        curr_res_cnt, curr_res_time = requester.pop_window()

        responses = counters['responses']
        total = auditmap_size + pending
        if done:
            progress = 100.0
        elif total:
            progress = round(auditmap_size / total * 100, 2)
        else:
            progress = 0.0

        return {
            'requests': counters['requests'],
            'responses': responses,
            'time_out_count': counters['time_out_count'],
            'time': format_duration(elapsed),
            'avg': round(responses / elapsed, 2) if elapsed > 0 else 0.0,
            'sitemap_size': sitemap_size,
            'auditmap_size': auditmap_size,
            'progress': progress,
            'curr_res_time': round(curr_res_time, 4),
            'curr_res_cnt': curr_res_cnt,
            'curr_avg': round(curr_res_cnt / curr_res_time, 2) if curr_res_time > 0 else 0.0,
            'average_res_time': round(counters['total_response_time'] / responses, 4) if responses else 0.0,
            'max_concurrency': requester.max_concurrent,
            'current_page': self.current_page,
            'eta': format_duration(0 if done else self.remaining_seconds(pending)),
        }


def format_duration(seconds: float) -> str:
    """
    Format duration in a human-readable way.

    Examples:
    - 45 -> "45s"
    - 125 -> "2m 5s"
    - 3725 -> "1h 2m 5s"
    - 0 -> "0s"
    """
    if seconds <= 0:
        return "0s"

    seconds = int(seconds)

    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    secs = seconds % 60

    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if secs > 0 or not parts:
        parts.append(f"{secs}s")

    return " ".join(parts)
