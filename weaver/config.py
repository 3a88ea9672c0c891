"""
Weaver Configuration Module

Scanner defaults come from environment profiles (optionally via a .env
file); every scan gets its own ScanOptions instance which is passed by
reference to the Spider, the Framework and the requester.
"""

import os
import re
from dataclasses import dataclass, field, fields, asdict
from typing import Dict, List, Optional, Set

from dotenv import load_dotenv

from weaver.errors import ConfigurationError

# Load environment variables from .env file
load_dotenv()


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or value == '':
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if value is None or value == '':
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {value!r}")


class BaseConfig:
    """Base scanner defaults."""

    APP_NAME = 'Weaver'
    APP_VERSION = '0.4.0'

    # HTTP
    SCANNER_TIMEOUT = _env_int('WEAVER_TIMEOUT', 30)
    SCANNER_CONCURRENT_REQUESTS = _env_int('WEAVER_MAX_CONCURRENT', 20)
    SCANNER_MAX_TRIES = _env_int('WEAVER_MAX_TRIES', 5)
    SCANNER_RETRY_DELAY = _env_float('WEAVER_RETRY_DELAY', 0.5)  # seconds, doubled per attempt
    SCANNER_USER_AGENT = os.environ.get('WEAVER_USER_AGENT', 'Weaver/0.4 Web Application Scanner')

    # Crawl limits (-1 means unlimited)
    SCANNER_REDIRECT_LIMIT = _env_int('WEAVER_REDIRECT_LIMIT', 20)
    SCANNER_DEPTH_LIMIT = _env_int('WEAVER_DEPTH_LIMIT', -1)
    SCANNER_LINK_COUNT_LIMIT = _env_int('WEAVER_LINK_COUNT_LIMIT', -1)
    SCANNER_AUTO_REDUNDANT = _env_int('WEAVER_AUTO_REDUNDANT', 0)

    LOG_LEVEL = os.environ.get('WEAVER_LOG_LEVEL', 'INFO')


class DevelopmentConfig(BaseConfig):
    """Development configuration."""

    LOG_LEVEL = 'DEBUG'


class TestingConfig(BaseConfig):
    """Testing configuration: fast retries, small limits."""

    SCANNER_TIMEOUT = 5
    SCANNER_CONCURRENT_REQUESTS = 5
    SCANNER_RETRY_DELAY = 0.0


class ProductionConfig(BaseConfig):
    """Production configuration."""

    LOG_LEVEL = 'WARNING'


# Configuration dictionary for easy access
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': BaseConfig
}

AUDIT_KINDS = ('links', 'forms', 'cookies', 'headers')

# Extensions treated as binary resources when exclude_binaries is set
BINARY_EXTENSIONS = {
    '.jpg', '.jpeg', '.png', '.gif', '.bmp', '.ico', '.svg', '.webp',
    '.woff', '.woff2', '.ttf', '.eot', '.otf',
    '.pdf', '.doc', '.docx', '.xls', '.xlsx', '.ppt', '.pptx',
    '.zip', '.rar', '.tar', '.gz', '.7z', '.bz2',
    '.mp3', '.mp4', '.avi', '.mov', '.wmv', '.flv', '.webm', '.ogg',
    '.exe', '.dmg', '.iso', '.bin', '.swf',
}


@dataclass
class ScanOptions:
    """
    Options for a single scan.

    Passed explicitly to the Spider, the Framework and the requester;
    nothing reads scanner options from global state.
    """
    url: str = ''

    # Element kinds modules may audit
    audit: Set[str] = field(default_factory=set)

    # Crawl scope
    crawl_enabled: bool = True
    extend_paths: List[str] = field(default_factory=list)
    restrict_paths: List[str] = field(default_factory=list)
    exclude: List[str] = field(default_factory=list)
    include: List[str] = field(default_factory=list)
    redundant: Dict[str, int] = field(default_factory=dict)
    auto_redundant: int = BaseConfig.SCANNER_AUTO_REDUNDANT
    link_count_limit: int = BaseConfig.SCANNER_LINK_COUNT_LIMIT
    redirect_limit: int = BaseConfig.SCANNER_REDIRECT_LIMIT
    depth_limit: int = BaseConfig.SCANNER_DEPTH_LIMIT
    follow_subdomains: bool = False
    exclude_binaries: bool = False

    # HTTP
    max_tries: int = BaseConfig.SCANNER_MAX_TRIES
    max_concurrent: int = BaseConfig.SCANNER_CONCURRENT_REQUESTS
    timeout: int = BaseConfig.SCANNER_TIMEOUT
    retry_delay: float = BaseConfig.SCANNER_RETRY_DELAY
    verify_ssl: bool = True
    user_agent: str = BaseConfig.SCANNER_USER_AGENT
    cookies: Dict[str, str] = field(default_factory=dict)
    custom_headers: Dict[str, str] = field(default_factory=dict)
    proxy: Optional[str] = None

    # Components
    modules: List[str] = field(default_factory=list)
    plugins: List[str] = field(default_factory=list)
    reports: List[str] = field(default_factory=list)
    outfile: Optional[str] = None

    # Component listing filters (regular expressions)
    lsmod: Optional[str] = None
    lsplug: Optional[str] = None
    lsrep: Optional[str] = None

    @classmethod
    def from_config(cls, config_name: str = 'default', **overrides) -> 'ScanOptions':
        """Build options from an environment profile plus explicit overrides."""
        if config_name not in config:
            raise ConfigurationError(f"Unknown configuration profile: {config_name}")
        profile = config[config_name]

        options = cls(
            max_tries=profile.SCANNER_MAX_TRIES,
            max_concurrent=profile.SCANNER_CONCURRENT_REQUESTS,
            timeout=profile.SCANNER_TIMEOUT,
            retry_delay=profile.SCANNER_RETRY_DELAY,
            user_agent=profile.SCANNER_USER_AGENT,
            redirect_limit=profile.SCANNER_REDIRECT_LIMIT,
            depth_limit=profile.SCANNER_DEPTH_LIMIT,
            link_count_limit=profile.SCANNER_LINK_COUNT_LIMIT,
            auto_redundant=profile.SCANNER_AUTO_REDUNDANT,
        )

        known = {f.name for f in fields(cls)}
        for name, value in overrides.items():
            if name not in known:
                raise ConfigurationError(f"Unknown option: {name}")
            setattr(options, name, value)

        if 'audit' in overrides:
            options.audit = set(overrides['audit'])
        return options

    def audit_element(self, *kinds: str) -> 'ScanOptions':
        """Enable auditing of the given element kinds."""
        for kind in kinds:
            self._check_kind(kind)
            self.audit.add(kind)
        return self

    def dont_audit(self, *kinds: str) -> 'ScanOptions':
        """Disable auditing of the given element kinds."""
        for kind in kinds:
            self._check_kind(kind)
            self.audit.discard(kind)
        return self

    def audits(self, kind: str) -> bool:
        return kind in self.audit

    def do_not_crawl(self):
        self.crawl_enabled = False

    def crawl(self):
        self.crawl_enabled = True

    def validate(self) -> 'ScanOptions':
        """Raise ConfigurationError for inconsistent option values."""
        for kind in self.audit:
            self._check_kind(kind)

        if self.max_tries < 1:
            raise ConfigurationError("max_tries must be at least 1")
        if self.max_concurrent < 1:
            raise ConfigurationError("max_concurrent must be at least 1")

        for name, cap in self.redundant.items():
            if not isinstance(cap, int) or cap < 0:
                raise ConfigurationError(f"Redundancy cap for '{name}' must be a non-negative integer")

        for pattern in list(self.exclude) + list(self.include) + list(self.redundant):
            try:
                re.compile(pattern)
            except re.error as e:
                raise ConfigurationError(f"Invalid pattern {pattern!r}: {e}")

        return self

    def to_dict(self) -> Dict:
        data = asdict(self)
        data['audit'] = sorted(self.audit)
        return data

    @staticmethod
    def _check_kind(kind: str):
        if kind not in AUDIT_KINDS:
            raise ConfigurationError(
                f"Unknown element kind '{kind}', expected one of: {', '.join(AUDIT_KINDS)}"
            )
