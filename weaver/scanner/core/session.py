"""
Session management.

Keeps a scan logged in: a login check tells whether the session is still
authenticated and a login sequence restores it. Both are plain callables
(sync or async) receiving the shared AsyncRequester.
"""

import inspect
import re
from typing import Awaitable, Callable, Optional, Union
import logging

from weaver.errors import AuthenticationFailure
from weaver.scanner.core.requester import AsyncRequester

logger = logging.getLogger(__name__)

SessionCallable = Callable[[AsyncRequester], Union[bool, Awaitable[bool]]]


class Session:
    """
    Login check / login sequence pair for one scan.

    Args:
        requester: Requester the callables are invoked with
    """

    def __init__(self, requester: AsyncRequester):
        self.requester = requester
        self.login_check: Optional[SessionCallable] = None
        self.login_sequence: Optional[SessionCallable] = None

    def set_login_check(self, url: str, pattern: str) -> 'Session':
        """Consider the session logged in while `url` contains `pattern`."""
        regex = re.compile(pattern)

        async def check(http: AsyncRequester) -> bool:
            response = await http.get(url)
            return bool(regex.search(response.body or ''))

        self.login_check = check
        return self

    @property
    def has_login_check(self) -> bool:
        return self.login_check is not None

    async def logged_in(self) -> bool:
        if self.login_check is None:
            return True
        return bool(await self._call(self.login_check))

    async def login(self) -> bool:
        if self.login_sequence is None:
            return False
        logger.info("Running the login sequence")
        return bool(await self._call(self.login_sequence))

    async def ensure_logged_in(self):
        """
        Re-run the login sequence if the login check fails.

        Raises:
            AuthenticationFailure: The check still fails after logging in
        """
        if await self.logged_in():
            return

        logger.info("Session appears to be logged out")
        await self.login()

        if not await self.logged_in():
            raise AuthenticationFailure("Could not restore the logged-in session")

    async def _call(self, fn: SessionCallable):
        result = fn(self.requester)
        if inspect.isawaitable(result):
            result = await result
        return result
