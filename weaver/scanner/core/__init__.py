"""
Weaver Scanner Core Components

Contains the framework, spider, scope filter and HTTP requester.
"""

from weaver.scanner.core.requester import AsyncRequester, Response
from weaver.scanner.core.page import Page, ElementKind
from weaver.scanner.core.scope import ScopeFilter, ScopeContext
from weaver.scanner.core.spider import Spider, SpiderStatus
from weaver.scanner.core.framework import Framework, FrameworkStatus

__all__ = [
    'AsyncRequester', 'Response', 'Page', 'ElementKind', 'ScopeFilter', 'ScopeContext',
    'Spider', 'SpiderStatus', 'Framework', 'FrameworkStatus',
]
