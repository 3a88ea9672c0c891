"""
Weaver Spider

Stateful crawler with:
- Batched concurrent fetching bounded by the shared requester
- Scope, redundancy and link-count filtering
- Redirect tracking with a per-chain hop limit
- Retry-then-record failure handling
- Thread-safe pause/resume/push from a controlling thread
"""

import asyncio
import threading
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union
import logging

from weaver.scanner.core.page import Page
from weaver.scanner.core.requester import AsyncRequester, Response
from weaver.scanner.core.scope import ScopeFilter, ScopeContext, RedundancyCounters
from weaver.scanner.core.url import to_absolute, normalize_url

logger = logging.getLogger(__name__)


def wake(loop: Optional[asyncio.AbstractEventLoop], event: Optional[asyncio.Event]):
    """Set event on loop from whichever thread we are on."""
    if event is None or loop is None or loop.is_closed():
        return
    try:
        running = asyncio.get_running_loop()
    except RuntimeError:
        running = None
    if running is loop:
        event.set()
    else:
        loop.call_soon_threadsafe(event.set)


class SpiderStatus(Enum):
    IDLE = 'idle'
    RUNNING = 'running'
    PAUSED = 'paused'
    DONE = 'done'


@dataclass
class FrontierEntry:
    """Where a frontier URL came from."""
    depth: int = 0
    hops: int = 0


class Spider:
    """
    Crawls a site from a seed URL and records what it finds.

    All crawl state (frontier, sitemap, redirects, failures, counters) is
    owned by one instance; mutations happen on the instance's event loop
    while pause(), resume(), push() and the status queries may be called
    from any thread.
    """

    def __init__(self, options, requester: Optional[AsyncRequester] = None):
        """
        Args:
            options: ScanOptions for this crawl
            requester: Shared requester; one is created from options if omitted
        """
        self.options = options
        self.requester = requester or AsyncRequester.from_options(options)
        self.scope = ScopeFilter(options)

        self._lock = threading.RLock()
        self._paused = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._resumed: Optional[asyncio.Event] = None

        self._on_each_page: List[Callable] = []
        self._on_each_response: List[Callable] = []
        self._on_complete: List[Callable] = []

        self.reset()

    def reset(self):
        """Forget everything crawled so far and re-seed the frontier."""
        with self._lock:
            self._frontier: 'OrderedDict[str, FrontierEntry]' = OrderedDict()
            self._sitemap: Dict[str, int] = {}
            self._redirects: List[str] = []
            self._failures: List[str] = []
            self._failure_set = set()
            self._held: List[Tuple[str, FrontierEntry, Response]] = []
            self._followed = 0
            self._status = SpiderStatus.IDLE
            self.counters = RedundancyCounters(self.options.redundant, self.options.auto_redundant)
            self._seed()

    def _seed(self):
        if self.options.restrict_paths:
            self.push(self.options.restrict_paths)
            return
        if self.options.url:
            self.push(self.options.url)
        if self.options.extend_paths:
            self.push(self.options.extend_paths)

    # Accessors

    @property
    def url(self) -> str:
        return normalize_url(self.options.url) if self.options.url else ''

    @property
    def paths(self) -> List[str]:
        """URLs waiting in the frontier."""
        with self._lock:
            return list(self._frontier)

    @property
    def sitemap(self) -> List[str]:
        with self._lock:
            return list(self._sitemap)

    @property
    def fancy_sitemap(self) -> Dict[str, int]:
        """Visited URLs mapped to their HTTP status codes."""
        with self._lock:
            return dict(self._sitemap)

    @property
    def redirects(self) -> List[str]:
        with self._lock:
            return list(self._redirects)

    @property
    def failures(self) -> List[str]:
        with self._lock:
            return list(self._failures)

    @property
    def status(self) -> SpiderStatus:
        with self._lock:
            if self._status == SpiderStatus.DONE:
                return SpiderStatus.DONE
            if self._paused:
                return SpiderStatus.PAUSED
            return self._status

    @property
    def is_done(self) -> bool:
        return self.status == SpiderStatus.DONE

    @property
    def is_running(self) -> bool:
        return self.status == SpiderStatus.RUNNING

    @property
    def is_paused(self) -> bool:
        with self._lock:
            return self._paused

    # Observers

    def on_each_page(self, fn: Callable[[Page], None]) -> 'Spider':
        self._on_each_page.append(fn)
        return self

    def on_each_response(self, fn: Callable[[Response], None]) -> 'Spider':
        self._on_each_response.append(fn)
        return self

    def on_complete(self, fn: Callable[[], None]) -> 'Spider':
        self._on_complete.append(fn)
        return self

    # Control

    def push(self, paths: Union[str, Iterable[str]]) -> int:
        """
        Add paths to the frontier.

        Paths are resolved against the seed URL and normalized; anything
        already visited, failed or queued is ignored. Added paths count
        against the redundancy caps. Returns how many were added.
        """
        if isinstance(paths, str):
            paths = [paths]

        added = 0
        with self._lock:
            for path in paths:
                url = to_absolute(path, self.options.url or path)
                if url in self._sitemap or url in self._failure_set or url in self._frontier:
                    continue
                self.counters.record(url)
                self._frontier[url] = FrontierEntry()
                added += 1
        return added

    def pause(self):
        """Stop issuing fetches; responses already in flight are held."""
        with self._lock:
            self._paused = True
        logger.info("Spider paused")

    def resume(self):
        """Resume a paused crawl."""
        with self._lock:
            self._paused = False
            event, loop = self._resumed, self._loop
        logger.info("Spider resumed")
        wake(loop, event)

    # Crawl

    async def run(self, callback: Optional[Callable] = None,
                  pass_pages_to_callback: bool = True) -> Optional[List[str]]:
        """
        Crawl until the frontier is exhausted.

        Args:
            callback: Called with each Page (or each Response when
                pass_pages_to_callback is False) as it completes
            pass_pages_to_callback: Choose between pages and raw responses

        Returns:
            The sitemap, or None when crawling is disabled
        """
        if not self.options.crawl_enabled:
            logger.info("Crawling is disabled, skipping")
            return None

        with self._lock:
            self._loop = asyncio.get_running_loop()
            self._resumed = asyncio.Event()
            self._status = SpiderStatus.RUNNING

        started_here = not self.requester.started
        if started_here:
            await self.requester.start()

        logger.info(f"Crawling {self.url}")

        try:
            while True:
                await self._wait_if_paused()
                self._release_held(callback, pass_pages_to_callback)

                batch = self._next_batch()
                if not batch:
                    break

                await asyncio.gather(*(
                    self._visit(url, entry, callback, pass_pages_to_callback)
                    for url, entry in batch
                ))
        finally:
            if started_here:
                await self.requester.close()

        with self._lock:
            self._status = SpiderStatus.DONE

        logger.info(
            f"Crawl complete: {len(self._sitemap)} pages, "
            f"{len(self._redirects)} redirects, {len(self._failures)} failures"
        )
        for fn in self._on_complete:
            self._notify(fn)

        return self.sitemap

    def run_sync(self, callback: Optional[Callable] = None,
                 pass_pages_to_callback: bool = True) -> Optional[List[str]]:
        """Run the crawl on a fresh event loop in the calling thread."""
        return asyncio.run(self.run(callback, pass_pages_to_callback))

    async def _wait_if_paused(self):
        while True:
            with self._lock:
                if not self._paused:
                    return
                self._resumed.clear()
            await self._resumed.wait()

    def _next_batch(self) -> List[Tuple[str, FrontierEntry]]:
        """Dequeue up to max_concurrent URLs within the link budget."""
        with self._lock:
            size = self.requester.max_concurrent
            if self.options.link_count_limit >= 0:
                size = min(size, self.options.link_count_limit - self._followed)

            batch = []
            while self._frontier and len(batch) < size:
                url, entry = self._frontier.popitem(last=False)
                if url in self._sitemap or url in self._failure_set:
                    continue
                batch.append((url, entry))

            self._followed += len(batch)
            return batch

    async def _visit(self, url: str, entry: FrontierEntry,
                     callback: Optional[Callable], pass_pages: bool):
        response = await self.requester.fetch(
            url, max_tries=self.options.max_tries, allow_redirects=False
        )

        with self._lock:
            if self._paused:
                self._held.append((url, entry, response))
                return

        self._handle(url, entry, response, callback, pass_pages)

    def _release_held(self, callback: Optional[Callable], pass_pages: bool):
        with self._lock:
            held, self._held = self._held, []
        for url, entry, response in held:
            self._handle(url, entry, response, callback, pass_pages)

    def _handle(self, url: str, entry: FrontierEntry, response: Response,
                callback: Optional[Callable], pass_pages: bool):
        if response.failed:
            failure = response.failure()
            logger.warning(f"Giving up on {url} after {response.attempts} attempts: {failure}")
            with self._lock:
                self._failures.append(url)
                self._failure_set.add(url)
            return

        if response.is_redirect:
            self._handle_redirect(url, entry, response)
            return

        with self._lock:
            self._sitemap[url] = response.status

        page = Page.from_response(response, self.requester.cookie_jar)

        for fn in self._on_each_response:
            self._notify(fn, response)
        for fn in self._on_each_page:
            self._notify(fn, page)
        if callback is not None:
            self._notify(callback, page if pass_pages else response)

        depth_limit = self.options.depth_limit
        if depth_limit >= 0 and entry.depth >= depth_limit:
            return

        for path in page.paths:
            self._enqueue(path, FrontierEntry(depth=entry.depth + 1))

    def _handle_redirect(self, url: str, entry: FrontierEntry, response: Response):
        limit = self.options.redirect_limit
        if limit >= 0 and entry.hops >= limit:
            logger.info(f"Redirect limit ({limit}) reached at {url}, dropping the chain")
            return

        with self._lock:
            self._redirects.append(url)

        location = response.location
        if not location:
            return

        target = to_absolute(location, url)
        if not self.scope.same_domain(target, self.url):
            logger.info(f"Ignoring redirect from {url} to foreign location {target}")
            return

        self._enqueue(target, FrontierEntry(depth=entry.depth, hops=entry.hops + 1))

    def _enqueue(self, url: str, entry: FrontierEntry) -> bool:
        with self._lock:
            context = ScopeContext(
                seed_url=self.url,
                sitemap=self._sitemap,
                frontier=self._frontier,
                failures=self._failure_set,
                counters=self.counters,
                links_remaining=self._links_remaining()
            )
            rejection = self.scope.check(url, context)
            if rejection is not None:
                logger.debug(f"Skipping {url}: {rejection.value}")
                return False

            self.counters.record(url)
            self._frontier[url] = entry
            return True

    def _links_remaining(self) -> Optional[int]:
        limit = self.options.link_count_limit
        if limit < 0:
            return None
        return limit - self._followed - len(self._frontier)

    def _notify(self, fn: Callable, *args):
        try:
            fn(*args)
        except Exception as e:
            logger.error(f"Spider listener {fn!r} failed: {e}", exc_info=True)
