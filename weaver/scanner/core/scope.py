"""
URL/Scope Filter

ScopeFilter decides whether a discovered URL may be crawled. It is a pure
decision over the candidate and a ScopeContext snapshot; the caller bumps
the RedundancyCounters for every accepted candidate.
"""

import re
from dataclasses import dataclass, field
from typing import Collection, Dict, Optional, Pattern, Tuple
import logging

from weaver.config import BINARY_EXTENSIONS
from weaver.errors import ScopeRejection
from weaver.scanner.core.url import to_absolute, hostname, query_shape, path_extension

logger = logging.getLogger(__name__)


class RedundancyCounters:
    """
    How many URLs matching each redundancy rule have been followed.

    One counter per configured `redundant` pattern and one per query
    parameter shape for `auto_redundant`.
    """

    def __init__(self, redundant: Optional[Dict[str, int]] = None, auto_redundant: int = 0):
        self.rules: Tuple[Tuple[Pattern, int], ...] = tuple(
            (re.compile(pattern, re.IGNORECASE), cap) for pattern, cap in (redundant or {}).items()
        )
        self.auto_redundant = auto_redundant
        self._rule_counts: Dict[str, int] = {rule.pattern: 0 for rule, _ in self.rules}
        self._shape_counts: Dict[str, int] = {}

    def exceeded_rule(self, url: str) -> Optional[str]:
        """Pattern of the first rule whose cap the URL would exceed."""
        for rule, cap in self.rules:
            if rule.search(url) and self._rule_counts[rule.pattern] >= cap:
                return rule.pattern
        return None

    def exceeded_shape(self, url: str) -> bool:
        if self.auto_redundant <= 0:
            return False
        shape = query_shape(url)
        if shape is None:
            return False
        return self._shape_counts.get(shape, 0) >= self.auto_redundant

    def record(self, url: str):
        """Count a followed URL against every rule it matches."""
        for rule, _ in self.rules:
            if rule.search(url):
                self._rule_counts[rule.pattern] += 1

        if self.auto_redundant > 0:
            shape = query_shape(url)
            if shape is not None:
                self._shape_counts[shape] = self._shape_counts.get(shape, 0) + 1

    def counts(self) -> Dict[str, int]:
        return dict(self._rule_counts)

    def reset(self):
        self._rule_counts = {key: 0 for key in self._rule_counts}
        self._shape_counts.clear()


@dataclass
class ScopeContext:
    """Crawl state a scope decision depends on."""
    seed_url: str
    sitemap: Collection[str] = field(default_factory=dict)
    frontier: Collection[str] = field(default_factory=dict)
    failures: Collection[str] = field(default_factory=set)
    counters: Optional[RedundancyCounters] = None
    # None means no link-count limit
    links_remaining: Optional[int] = None


class ScopeFilter:
    """
    Scope rules for one scan.

    When restrict_paths is configured only those URLs are ever in scope;
    every other rule is bypassed.
    """

    def __init__(self, options):
        self.options = options
        self.exclude = [re.compile(p, re.IGNORECASE) for p in options.exclude]
        self.include = [re.compile(p, re.IGNORECASE) for p in options.include]
        self.restricted = frozenset(
            to_absolute(path, options.url) for path in options.restrict_paths
        ) if options.restrict_paths else None

    def in_scope(self, url: str, context: ScopeContext) -> bool:
        return self.check(url, context) is None

    def check(self, url: str, context: ScopeContext) -> Optional[ScopeRejection]:
        """Return why url is out of scope, or None when it may be crawled."""
        if not url.lower().startswith(('http://', 'https://')):
            return ScopeRejection.SCHEME

        if url in context.sitemap or url in context.frontier or url in context.failures:
            return ScopeRejection.KNOWN

        if self.restricted is not None:
            return None if url in self.restricted else ScopeRejection.RESTRICTED

        if not self.same_domain(url, context.seed_url):
            return ScopeRejection.DOMAIN

        if any(pattern.search(url) for pattern in self.exclude):
            return ScopeRejection.EXCLUDED

        if self.include and not any(pattern.search(url) for pattern in self.include):
            return ScopeRejection.NOT_INCLUDED

        if self.options.exclude_binaries and path_extension(url) in BINARY_EXTENSIONS:
            return ScopeRejection.BINARY

        if context.links_remaining is not None and context.links_remaining <= 0:
            return ScopeRejection.LINK_LIMIT

        # Both caps are enforced independently of the link budget
        if context.counters is not None:
            if context.counters.exceeded_rule(url):
                return ScopeRejection.REDUNDANT
            if context.counters.exceeded_shape(url):
                return ScopeRejection.AUTO_REDUNDANT

        return None

    def same_domain(self, url: str, seed_url: str) -> bool:
        """Scheme is ignored: http and https on one host share scope."""
        host = hostname(url)
        seed_host = hostname(seed_url)
        if host == seed_host:
            return True
        return self.options.follow_subdomains and host.endswith('.' + seed_host)
