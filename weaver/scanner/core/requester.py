"""
Async HTTP Requester for Weaver

Shared HTTP client facade with:
- Connection pooling
- A single concurrency ceiling for crawling and auditing
- Persistent cookie jar
- Retry policy for network and server failures
- Request/response statistics
"""

import asyncio
import aiohttp
import time
from typing import Dict, Optional, Any, List
from urllib.parse import urlparse
from dataclasses import dataclass, field
from enum import Enum
import ssl
import logging

from weaver.errors import FetchFailure, NetworkFailure, ServerFailure

logger = logging.getLogger(__name__)


def is_text_content(content_type: str) -> bool:
    """Anything a human could read: text/*, JSON, XML, JavaScript."""
    content_type = (content_type or '').lower()
    if not content_type:
        return True
    return (content_type.startswith('text/') or 'json' in content_type
            or 'xml' in content_type or 'javascript' in content_type)


class RequestMethod(Enum):
    """HTTP request methods."""
    GET = 'GET'
    POST = 'POST'
    HEAD = 'HEAD'


@dataclass
class Response:
    """
    Represents an HTTP response.
    """
    url: str
    status: int
    headers: Dict[str, str]
    body: str
    elapsed: float
    cookies: Dict[str, str] = field(default_factory=dict)
    set_cookie_headers: List[str] = field(default_factory=list)
    error: Optional[str] = None
    timed_out: bool = False
    request_method: str = 'GET'
    attempts: int = 1

    @property
    def is_success(self) -> bool:
        """2xx."""
        return 200 <= self.status < 300

    @property
    def is_redirect(self) -> bool:
        """3xx; the Spider follows these itself."""
        return 300 <= self.status < 400

    @property
    def is_server_error(self) -> bool:
        return self.status >= 500

    @property
    def failed(self) -> bool:
        """Network error or server error: eligible for a retry."""
        return self.error is not None or self.is_server_error

    @property
    def content_type(self) -> str:
        """Lower-cased Content-Type, empty when absent."""
        return self.get_header('Content-Type').lower()

    @property
    def is_html(self) -> bool:
        return 'html' in self.content_type

    @property
    def is_text(self) -> bool:
        return is_text_content(self.content_type)

    @property
    def location(self) -> Optional[str]:
        return self.get_header('Location') or None

    def get_header(self, name: str, default: str = '') -> str:
        """Case-insensitive header lookup."""
        for key, value in self.headers.items():
            if key.lower() == name.lower():
                return value
        return default

    def failure(self) -> FetchFailure:
        """The failure this response represents."""
        if self.error is not None:
            return NetworkFailure(self.url, self.error, self.attempts)
        return ServerFailure(self.url, self.status, self.attempts)


class AsyncRequester:
    """
    Async HTTP requester shared by the Spider and the audit dispatcher.

    All requests pass through one semaphore so the total number of
    requests in flight never exceeds max_concurrent, whichever component
    issued them.
    """

    DEFAULT_HEADERS = {
        'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
        'Accept-Language': 'en-US,en;q=0.5',
        'Accept-Encoding': 'gzip, deflate',
    }

    # Bodies larger than this are truncated
    MAX_BODY_SIZE = 10 * 1024 * 1024

    def __init__(
            self,
            timeout: int = 30,
            max_concurrent: int = 20,
            delay: float = 0.0,
            max_tries: int = 5,
            retry_delay: float = 0.5,
            verify_ssl: bool = True,
            user_agent: Optional[str] = None,
            custom_headers: Optional[Dict[str, str]] = None,
            cookies: Optional[Dict[str, str]] = None,
            proxy: Optional[str] = None
    ):
        """
        Initialize the async requester.

        Args:
            timeout: Request timeout in seconds
            max_concurrent: Maximum concurrent requests
            delay: Minimum delay between requests to the same host
            max_tries: Attempts per URL in fetch()
            retry_delay: Base back-off between attempts, doubled each time
            verify_ssl: Whether to verify SSL certificates
            user_agent: User-Agent header value
            custom_headers: Custom headers to include in all requests
            cookies: Cookies to seed the jar with
            proxy: Proxy URL for all requests
        """
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.max_concurrent = max_concurrent
        self.delay = delay
        self.max_tries = max_tries
        self.retry_delay = retry_delay
        self.verify_ssl = verify_ssl
        self.proxy = proxy

        self.headers = self.DEFAULT_HEADERS.copy()
        if user_agent:
            self.headers['User-Agent'] = user_agent
        if custom_headers:
            self.headers.update(custom_headers)

        self.cookies = cookies or {}

        self._semaphore: Optional[asyncio.Semaphore] = None
        self._last_request_time: Dict[str, float] = {}
        self._session: Optional[aiohttp.ClientSession] = None
        self._in_flight = 0

        self.stats = {
            'requests': 0,
            'responses': 0,
            'time_out_count': 0,
            'total_response_time': 0.0,
            'total_bytes': 0,
        }
        # Window for the "current" response rate, reset by the stats reader
        self._window_count = 0
        self._window_time = 0.0

    @classmethod
    def from_options(cls, options) -> 'AsyncRequester':
        return cls(
            timeout=options.timeout,
            max_concurrent=options.max_concurrent,
            max_tries=options.max_tries,
            retry_delay=options.retry_delay,
            verify_ssl=options.verify_ssl,
            user_agent=options.user_agent,
            custom_headers=options.custom_headers,
            cookies=options.cookies,
            proxy=options.proxy,
        )

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    @property
    def started(self) -> bool:
        return self._session is not None and not self._session.closed

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def cookie_jar(self) -> Optional[aiohttp.CookieJar]:
        return self._session.cookie_jar if self._session else None

    async def start(self):
        """Open the shared session; a no-op when already started."""
        if self.started:
            return

        # unsafe=True keeps cookies set by IP-address hosts
        self._session = aiohttp.ClientSession(
            connector=aiohttp.TCPConnector(limit=self.max_concurrent, ssl=self._ssl_context()),
            timeout=self.timeout,
            headers=self.headers,
            cookie_jar=aiohttp.CookieJar(unsafe=True),
        )
        if self.cookies:
            self._session.cookie_jar.update_cookies(self.cookies)

        self._semaphore = asyncio.Semaphore(self.max_concurrent)

    def update_cookies(self, cookies: Dict[str, str]):
        """Add cookies to the jar, or to the seed cookies when not started yet."""
        self.cookies.update(cookies)
        if self._session is not None:
            self._session.cookie_jar.update_cookies(cookies)

    async def close(self):
        """Close the session. start() may be called again afterwards."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
        self._semaphore = None

    def _ssl_context(self) -> ssl.SSLContext:
        context = ssl.create_default_context()
        if not self.verify_ssl:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context

    async def _throttle(self, host: str):
        """Keep at least `delay` seconds between requests to one host."""
        if not self.delay:
            return
        wait = self._last_request_time.get(host, 0.0) + self.delay - time.time()
        if wait > 0:
            await asyncio.sleep(wait)
        self._last_request_time[host] = time.time()

    async def request(
            self,
            url: str,
            method: RequestMethod = RequestMethod.GET,
            data: Optional[Dict[str, Any]] = None,
            headers: Optional[Dict[str, str]] = None,
            allow_redirects: bool = True
    ) -> Response:
        """
        Make a single HTTP request.

        Network errors never raise; they come back as a Response with
        status 0 and the error message set.
        """
        if not self.started:
            await self.start()

        host = urlparse(url).netloc

        request_headers = {}
        if headers:
            request_headers.update(headers)

        async with self._semaphore:
            await self._throttle(host)
            self._in_flight += 1
            self.stats['requests'] += 1
            start_time = time.time()

            try:
                async with self._session.request(
                        method.value,
                        url,
                        data=data if method != RequestMethod.GET else None,
                        params=data if method == RequestMethod.GET else None,
                        headers=request_headers,
                        allow_redirects=allow_redirects,
                        proxy=self.proxy
                ) as resp:
                    body = await resp.text(errors='ignore')
                    if len(body) > self.MAX_BODY_SIZE:
                        body = body[:self.MAX_BODY_SIZE]
                    elapsed = time.time() - start_time

                    response = Response(
                        url=str(resp.url),
                        status=resp.status,
                        headers=dict(resp.headers),
                        body=body,
                        elapsed=elapsed,
                        cookies={name: morsel.value for name, morsel in resp.cookies.items()},
                        set_cookie_headers=resp.headers.getall('Set-Cookie', []),
                        request_method=method.value
                    )

                    self._record(elapsed, len(body))
                    return response

            except asyncio.TimeoutError:
                self.stats['time_out_count'] += 1
                logger.warning(f"Timeout on {url}")
                return self._error_response(url, method, "Request timed out", start_time, timed_out=True)

            except aiohttp.ClientError as e:
                logger.warning(f"Client error on {url}: {e}")
                return self._error_response(url, method, str(e) or e.__class__.__name__, start_time)

            finally:
                self._in_flight -= 1

    async def fetch(
            self,
            url: str,
            method: RequestMethod = RequestMethod.GET,
            max_tries: Optional[int] = None,
            **kwargs
    ) -> Response:
        """
        Request url, retrying network errors and 5xx responses.

        Makes at most max_tries attempts with exponential back-off between
        them. The last response is returned either way; check
        Response.failed to tell a permanent failure apart.
        """
        max_tries = max_tries or self.max_tries
        response = None

        for attempt in range(max_tries):
            response = await self.request(url, method, **kwargs)
            response.attempts = attempt + 1

            if not response.failed:
                return response

            reason = response.error or f"HTTP {response.status}"
            logger.warning(f"Failed to fetch {url}: {reason} (attempt {attempt + 1}/{max_tries})")

            # Exponential backoff
            if attempt < max_tries - 1 and self.retry_delay:
                await asyncio.sleep(self.retry_delay * 2 ** attempt)

        return response

    async def get(self, url: str, **kwargs) -> Response:
        return await self.request(url, RequestMethod.GET, **kwargs)

    async def post(self, url: str, data: Dict = None, **kwargs) -> Response:
        return await self.request(url, RequestMethod.POST, data=data, **kwargs)

    def _record(self, elapsed: float, size: int):
        self.stats['responses'] += 1
        self.stats['total_response_time'] += elapsed
        self.stats['total_bytes'] += size
        self._window_count += 1
        self._window_time += elapsed

    def _error_response(self, url, method, error, start_time, timed_out=False) -> Response:
        return Response(
            url=url,
            status=0,
            headers={},
            body='',
            elapsed=time.time() - start_time,
            error=error,
            timed_out=timed_out,
            request_method=method.value
        )

    def pop_window(self):
        """Return (count, total time) of responses since the last call and reset."""
        window = (self._window_count, self._window_time)
        self._window_count = 0
        self._window_time = 0.0
        return window

    def get_stats(self) -> Dict[str, Any]:
        """Copy of the raw counters; Framework.stats() derives the rest."""
        return self.stats.copy()
