"""
Rate-limited concurrent worklog fetching.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Dict, Iterable, Optional

from tqdm import tqdm

from .errors import RemoteOperationError

REQUESTS_PER_SECOND = 3
DEFAULT_MAX_WORKERS = 8


class RateLimiter:
    """Fixed-interval dispatcher: at most ``per_second`` starts per second.

    Each acquire() reserves the next free start slot, spaced ``1/per_second``
    apart, and sleeps until it arrives. Only the start is gated; how long the
    caller then runs is irrelevant to later slots.
    """

    def __init__(self, per_second: float, clock: Callable[[], float]=time.monotonic,
                 sleep: Callable[[float], None]=time.sleep):
        if per_second <= 0:
            raise ValueError(f"per_second must be positive, got {per_second!r}")
        self.interval = 1.0 / per_second
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._next_slot: Optional[float] = None

    def acquire(self) -> float:
        """Block until this caller may start; return the reserved slot time."""
        with self._lock:
            now = self._clock()
            slot = now if self._next_slot is None or self._next_slot < now else self._next_slot
            self._next_slot = slot + self.interval
        delay = slot - now
        if delay > 0:
            self._sleep(delay)
        return slot


def fetch_worklogs_throttled(fetch: Callable[..., Dict[str, Any]], issue_keys: Iterable[str],
                             since: int, until: Optional[int]=None,
                             requests_per_second: float=REQUESTS_PER_SECOND,
                             max_workers: int=DEFAULT_MAX_WORKERS, progress: bool=True,
                             limiter: Optional[RateLimiter]=None) -> Dict[str, Dict[str, Any]]:
    """Fetch worklogs for every issue key, starting at most N fetches per second.

    Args:
        fetch: Callable ``fetch(issue_key, since, until)`` returning a worklog payload.
        issue_keys: Issue keys to fetch, each scheduled exactly once.
        since: Lower bound passed to every fetch (epoch ms).
        until: Optional upper bound passed to every fetch (epoch ms).
        requests_per_second: Start rate cap.
        max_workers: Thread pool size.
        progress: Show a tqdm progress bar on stderr.
        limiter: Pre-built RateLimiter (overrides requests_per_second).

    Returns:
        Dict[str, Dict[str, Any]]: issue key -> payload. Returned only after
        every fetch has resolved.

    Raises:
        RemoteOperationError: as soon as any fetch fails. Fetches not yet
        started are cancelled; no partial result is returned.
    """
    keys = list(dict.fromkeys(issue_keys))
    limiter = limiter or RateLimiter(requests_per_second)

    def run(key: str) -> Dict[str, Any]:
        limiter.acquire()
        return fetch(key, since, until)

    results: Dict[str, Dict[str, Any]] = {}
    if not keys:
        return results

    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        futures = {executor.submit(run, key): key for key in keys}
        with tqdm(total=len(futures), desc="Fetching worklogs", unit="issue", disable=not progress) as pbar:
            for fut in as_completed(futures):
                key = futures[fut]
                try:
                    results[key] = fut.result()
                except Exception as e:
                    for pending in futures:
                        pending.cancel()
                    if isinstance(e, RemoteOperationError):
                        raise
                    raise RemoteOperationError(f"worklog fetch for {key} failed: {e}") from e
                finally:
                    pbar.update(1)
    return results
