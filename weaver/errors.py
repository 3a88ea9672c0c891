"""
Weaver Error Taxonomy

Fetch failures are retried and recorded, module failures are logged and
recorded per module, and only configuration errors reach the caller.
"""

from enum import Enum
from typing import Optional


class WeaverError(Exception):
    """Base class for all scanner errors."""


class FetchFailure(WeaverError):
    """A URL could not be fetched after all retry attempts."""

    def __init__(self, url: str, message: str = '', attempts: int = 0):
        self.url = url
        self.attempts = attempts
        super().__init__(message or f"Failed to fetch {url}")


class NetworkFailure(FetchFailure):
    """Connection refused, DNS failure or timeout."""


class ServerFailure(FetchFailure):
    """The server kept answering with a 5xx status."""

    def __init__(self, url: str, status: int, attempts: int = 0):
        self.status = status
        super().__init__(url, f"HTTP {status} from {url}", attempts)


class ModuleFailure(WeaverError):
    """A module raised while auditing a page."""

    def __init__(self, module: str, url: str, cause: Optional[BaseException] = None):
        self.module = module
        self.url = url
        self.cause = cause
        super().__init__(f"Module '{module}' failed on {url}: {cause}")

    def to_dict(self):
        return {
            'module': self.module,
            'url': self.url,
            'error': repr(self.cause),
        }


class AuthenticationFailure(WeaverError):
    """The login sequence did not restore an authenticated session."""


class ConfigurationError(WeaverError):
    """Invalid option value or unknown module, plugin or report name."""


class ScopeRejection(Enum):
    """Why a candidate URL was filtered out. Not an error."""
    SCHEME = 'scheme'
    RESTRICTED = 'restricted'
    KNOWN = 'known'
    DOMAIN = 'domain'
    EXCLUDED = 'excluded'
    NOT_INCLUDED = 'not_included'
    BINARY = 'binary'
    LINK_LIMIT = 'link_limit'
    REDUNDANT = 'redundant'
    AUTO_REDUNDANT = 'auto_redundant'
