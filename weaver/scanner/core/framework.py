"""
Weaver Framework

The main orchestrator of a scan.
Coordinates crawling, auditing, plugins and reporting.
"""

import asyncio
import threading
from collections import deque
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional
import logging

from weaver.config import ScanOptions
from weaver.errors import AuthenticationFailure, ConfigurationError, ModuleFailure
from weaver.scanner.core.auditstore import AuditStore
from weaver.scanner.core.components import ComponentManager, MODULES, PLUGINS, REPORTS
from weaver.scanner.core.dispatch import is_applicable
from weaver.scanner.core.page import Page
from weaver.scanner.core.progress import ScanStats
from weaver.scanner.core.requester import AsyncRequester, Response
from weaver.scanner.core.session import Session
from weaver.scanner.core.spider import Spider, wake
from weaver.scanner.core.url import to_absolute

logger = logging.getLogger(__name__)


class FrameworkStatus(Enum):
    READY = 'ready'
    PREPARING = 'preparing'
    CRAWLING = 'crawling'
    AUDITING = 'auditing'
    CLEANUP = 'cleanup'
    DONE = 'done'
    PAUSED = 'paused'


class Framework:
    """
    Main scanner framework.

    Orchestrates:
    1. Plugin start-up
    2. Crawling, feeding every page to the page queue
    3. Auditing of the page and URL queues with the applicable modules
    4. Plugin result collection, reports and the completion callback

    The Spider and the URL-queue fetches share one AsyncRequester, so its
    concurrency ceiling bounds every request the scan makes.
    """

    def __init__(self, options: Optional[ScanOptions] = None):
        """
        Initialize the framework.

        Args:
            options: Scan options; loads the modules, plugins and reports
                they name

        Raises:
            ConfigurationError: Invalid options or unknown component names
        """
        self.options = options or ScanOptions()
        self.options.validate()

        self.requester = AsyncRequester.from_options(self.options)
        self.session = Session(self.requester)
        self.stats_tracker = ScanStats()

        self.modules = ComponentManager('module', MODULES)
        self.plugins = ComponentManager('plugin', PLUGINS)
        self.reports = ComponentManager('report', REPORTS)

        self._lock = threading.RLock()
        self._paused = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._resumed: Optional[asyncio.Event] = None
        self._on_audit_page: List[Callable[[Page], None]] = []

        self._init_state()
        self._load_components()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.reset()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.reset()

    def _init_state(self):
        with self._lock:
            self.spider = Spider(self.options, self.requester)
            self.spider.on_each_page(self.push_to_page_queue)
            self.page_queue: Deque[Page] = deque()
            self.url_queue: Deque[str] = deque()
            self._page_queue_total = 0
            self._url_queue_total = 0
            self.auditmap: List[str] = []
            self._failures: List[str] = []
            self._audit_failures: List[str] = []
            self._redirect_hops: Dict[str, int] = {}
            self._module_failures: List[ModuleFailure] = []
            self._module_instances: Dict[str, Any] = {}
            self._plugin_tasks: Dict[str, asyncio.Task] = {}
            self._audit_done: Optional[asyncio.Event] = None
            self._status = FrameworkStatus.READY
            self.auditstore = AuditStore(self.options.to_dict())
        self.stats_tracker.reset()

    def _load_components(self):
        if self.options.modules:
            self.modules.load(self.options.modules)
        if self.options.plugins:
            self.plugins.load(self.options.plugins)
        if self.options.reports:
            self.reports.load(self.options.reports)

    # Status

    @property
    def status(self) -> FrameworkStatus:
        with self._lock:
            if self._paused and self._status != FrameworkStatus.DONE:
                return FrameworkStatus.PAUSED
            return self._status

    @property
    def is_paused(self) -> bool:
        with self._lock:
            return self._paused

    @property
    def is_running(self) -> bool:
        return self.status not in (FrameworkStatus.READY, FrameworkStatus.DONE)

    def _set_status(self, status: FrameworkStatus):
        with self._lock:
            self._status = status
        logger.info(f"Framework status: {status.value}")

    # Queues

    def push_to_page_queue(self, page: Page):
        with self._lock:
            self.page_queue.append(page)
            self._page_queue_total += 1

    def push_to_url_queue(self, url: str):
        with self._lock:
            self.url_queue.append(to_absolute(url, self.options.url or url))
            self._url_queue_total += 1

    @property
    def page_queue_total_size(self) -> int:
        """Pages ever pushed to the page queue."""
        return self._page_queue_total

    @property
    def url_queue_total_size(self) -> int:
        """URLs ever pushed to the URL queue."""
        return self._url_queue_total

    # Observers

    def on_audit_page(self, fn: Callable[[Page], None]) -> 'Framework':
        self._on_audit_page.append(fn)
        return self

    # Results

    @property
    def sitemap(self) -> List[str]:
        """Crawled URLs followed by any audited URL the crawl didn't visit."""
        sitemap = self.spider.sitemap
        known = set(sitemap)
        return sitemap + [url for url in self.auditmap if url not in known]

    @property
    def failures(self) -> List[str]:
        """URLs that could not be fetched, by the Spider or for auditing."""
        visited = set(self.sitemap)
        failures = []
        for url in self.spider.failures + list(self._failures):
            if url not in visited and url not in failures:
                failures.append(url)
        return failures

    @property
    def audit_failures(self) -> List[str]:
        """Pages left unaudited because the session could not be restored."""
        return list(self._audit_failures)

    @property
    def module_failures(self) -> List[ModuleFailure]:
        return list(self._module_failures)

    def stats(self) -> Dict[str, Any]:
        """Snapshot of the scan statistics."""
        with self._lock:
            pending = len(self.page_queue) + len(self.url_queue)
            done = self._status == FrameworkStatus.DONE
        return self.stats_tracker.snapshot(
            self.requester,
            sitemap_size=len(self.spider.sitemap),
            auditmap_size=len(self.auditmap),
            pending=pending,
            done=done
        )

    # Control

    def pause(self):
        """Pause crawling and auditing; in-flight work completes first."""
        with self._lock:
            self._paused = True
        self.spider.pause()
        logger.info("Framework paused")

    def resume(self):
        with self._lock:
            self._paused = False
            loop, event = self._loop, self._resumed
        self.spider.resume()
        logger.info("Framework resumed")
        wake(loop, event)

    def reset(self):
        """Clear all scan state and unload every component."""
        self.modules.clear()
        self.plugins.clear()
        self.reports.clear()
        self.session = Session(self.requester)
        self._on_audit_page.clear()
        with self._lock:
            self._paused = False
        self._init_state()

    # Run

    async def run(self, callback: Optional[Callable[['Framework'], None]] = None) -> AuditStore:
        """
        Execute the scan.

        Args:
            callback: Called with the framework during cleanup, after the
                AuditStore has been finalized and the reports have run

        Returns:
            The finalized AuditStore
        """
        with self._lock:
            self._loop = asyncio.get_running_loop()
            self._resumed = asyncio.Event()
            self._audit_done = asyncio.Event()

        self._set_status(FrameworkStatus.PREPARING)

        started_here = not self.requester.started
        if started_here:
            await self.requester.start()

        self.auditstore.start()
        self.stats_tracker.start()
        self._start_plugins()

        try:
            await self._crawl()

            self._set_status(FrameworkStatus.AUDITING)
            await self._audit()
            self._audit_done.set()

            self._set_status(FrameworkStatus.CLEANUP)
            await self._cleanup(callback)
        finally:
            self._audit_done.set()
            for task in self._plugin_tasks.values():
                if not task.done():
                    task.cancel()
            if started_here:
                await self.requester.close()

        self._set_status(FrameworkStatus.DONE)
        return self.auditstore

    def run_sync(self, callback: Optional[Callable[['Framework'], None]] = None) -> AuditStore:
        """Run the scan on a fresh event loop in the calling thread."""
        return asyncio.run(self.run(callback))

    async def wait_for_audit(self):
        """Block until auditing has finished; used by plugins."""
        if self._audit_done is not None:
            await self._audit_done.wait()

    async def _crawl(self):
        if self.options.restrict_paths:
            logger.info("Restricted to the given paths, skipping the crawl")
            for path in self.options.restrict_paths:
                self.push_to_url_queue(path)
            return

        if not self.options.crawl_enabled:
            logger.info("Crawling is disabled, auditing the seed URLs only")
            for url in ([self.options.url] if self.options.url else []) + list(self.options.extend_paths):
                self.push_to_url_queue(url)
            return

        if not self.options.url:
            return

        self._set_status(FrameworkStatus.CRAWLING)
        await self.spider.run()

    async def _audit(self):
        """Drain the page queue, then the URL queue, until both are empty."""
        while True:
            await self._wait_if_paused()

            with self._lock:
                page = self.page_queue.popleft() if self.page_queue else None
            if page is not None:
                await self.audit_page(page)
                continue

            urls = self._next_urls()
            if not urls:
                break

            for page in await self._fetch_pages(urls):
                with self._lock:
                    self.page_queue.append(page)

    def _next_urls(self) -> List[str]:
        with self._lock:
            urls = []
            while self.url_queue and len(urls) < self.requester.max_concurrent:
                url = self.url_queue.popleft()
                if url not in self.auditmap and url not in urls:
                    urls.append(url)
            return urls

    async def _fetch_pages(self, urls: List[str]) -> List[Page]:
        responses = await asyncio.gather(*(
            self.requester.fetch(url, max_tries=self.options.max_tries, allow_redirects=False)
            for url in urls
        ))

        pages = []
        for url, response in zip(urls, responses):
            if response.failed:
                logger.warning(f"Could not fetch {url} for auditing: {response.failure()}")
                with self._lock:
                    self._failures.append(url)
                continue
            if response.is_redirect:
                self._follow_redirect(url, response)
                continue
            pages.append(Page.from_response(response, self.requester.cookie_jar))
        return pages

    def _follow_redirect(self, url: str, response: Response):
        """Queue an in-scope redirect target, within redirect_limit hops."""
        with self._lock:
            hops = self._redirect_hops.pop(url, 0)

        limit = self.options.redirect_limit
        if limit >= 0 and hops >= limit:
            logger.info(f"Redirect limit ({limit}) reached at {url}, dropping the chain")
            return

        location = response.location
        if not location:
            return

        target = to_absolute(location, url)
        scope = self.spider.scope
        if not scope.same_domain(target, self.options.url or url):
            logger.info(f"Ignoring redirect from {url} to foreign location {target}")
            return
        if scope.restricted is not None and target not in scope.restricted:
            logger.info(f"Ignoring redirect from {url} to {target} outside the restricted paths")
            return

        with self._lock:
            self._redirect_hops[target] = hops + 1
            self.url_queue.append(target)

    async def _wait_if_paused(self):
        while True:
            with self._lock:
                if not self._paused:
                    return
                self._resumed.clear()
            await self._resumed.wait()

    async def audit_page(self, page: Page) -> bool:
        """
        Run every applicable loaded module against a page.

        Args:
            page: Page to audit

        Returns:
            False if the page was skipped (binary content, failed login)
        """
        if self.options.exclude_binaries and not page.is_text:
            logger.info(f"Skipping binary page {page.url}")
            return False

        if self.session.has_login_check:
            try:
                await self.session.ensure_logged_in()
            except AuthenticationFailure as e:
                logger.error(f"Not auditing {page.url}: {e}")
                with self._lock:
                    if page.url not in self._audit_failures:
                        self._audit_failures.append(page.url)
                return False

        for fn in self._on_audit_page:
            try:
                fn(page)
            except Exception as e:
                logger.error(f"on_audit_page listener {fn!r} failed: {e}", exc_info=True)

        with self._lock:
            if page.url not in self.auditmap:
                self.auditmap.append(page.url)
            audited = len(self.auditmap)
        self.stats_tracker.page_audited(page.url, audited)

        logger.debug(f"Auditing {page.url}")
        for name, module_cls in list(self.modules.loaded.items()):
            if not is_applicable(module_cls, page, self.options):
                continue
            await self._run_module(name, module_cls, page)

        return True

    async def _run_module(self, name: str, module_cls, page: Page):
        module = self._module_instances.get(name)
        if module is None:
            module = self._module_instances[name] = module_cls(self)

        try:
            await module.run(page)
        except Exception as e:
            failure = ModuleFailure(name, page.url, e)
            logger.error(str(failure), exc_info=True)
            with self._lock:
                self._module_failures.append(failure)

    # Plugins and reports

    def _start_plugins(self):
        for name, plugin_cls in self.plugins.loaded.items():
            plugin = plugin_cls(self)
            self._plugin_tasks[name] = asyncio.ensure_future(plugin.run())
            logger.info(f"Started plugin {name}")

    async def _collect_plugins(self):
        for name, task in self._plugin_tasks.items():
            try:
                results = await task
            except Exception as e:
                logger.error(f"Plugin '{name}' failed: {e}", exc_info=True)
                continue
            self.auditstore.add_plugin_results(name, results)

    async def _cleanup(self, callback: Optional[Callable]):
        await self._collect_plugins()

        self.auditstore.finalize(
            sitemap=self.sitemap,
            failures=self.failures,
            module_failures=[failure.to_dict() for failure in self._module_failures],
            audit_failures=self.audit_failures
        )
        self.stats_tracker.finish()

        for name, report_cls in self.reports.loaded.items():
            try:
                report_cls(self.auditstore, self.options.outfile).run()
            except OSError as e:
                logger.error(f"Report '{name}' could not be written: {e}")

        logger.info(
            f"Audit complete: {len(self.auditstore.issues)} issues on "
            f"{len(self.auditmap)} pages in {self.auditstore.delta_time}"
        )

        if callback is not None:
            callback(self)

    def report_as(self, name: str) -> str:
        """
        Render the AuditStore with the named report.

        Raises:
            ConfigurationError: Unknown report, or one that can't write to
                an outfile
        """
        report_cls = self.reports[name]
        if not report_cls.supports_outfile:
            raise ConfigurationError(f"Report '{name}' does not support the outfile option")
        return report_cls(self.auditstore).render(self.auditstore)

    def list_modules(self) -> List[Dict[str, Any]]:
        return self.modules.list(self.options.lsmod)

    def list_plugins(self) -> List[Dict[str, Any]]:
        return self.plugins.list(self.options.lsplug)

    def list_reports(self) -> List[Dict[str, Any]]:
        return self.reports.list(self.options.lsrep)
