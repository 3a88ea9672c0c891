"""
Weaver Scanner

Async crawl and audit-orchestration core with pluggable modules, plugins
and reports.
"""

from weaver.scanner.core.framework import Framework
from weaver.scanner.core.spider import Spider
from weaver.scanner.core.requester import AsyncRequester

__all__ = ['Framework', 'Spider', 'AsyncRequester']
