"""
HTML Comments Module

Detects sensitive information left in HTML comments.
"""

import re
from typing import List
import logging

from bs4 import BeautifulSoup, Comment

from weaver.scanner.core.page import ElementKind, Page
from weaver.scanner.modules.base import BaseModule, Severity, Confidence

logger = logging.getLogger(__name__)


# Patterns worth reporting when they show up in a comment
SENSITIVE_PATTERNS = {
    'credentials': {
        'patterns': [
            r'password\s*[:=]',
            r'passwd\s*[:=]',
            r'api[_-]?key\s*[:=]',
            r'secret\s*[:=]',
        ],
        'severity': Severity.MEDIUM,
        'name': 'Credentials in HTML Comment',
        'cwe_id': 'CWE-615'
    },
    'internal_ip': {
        'patterns': [
            r'\b10\.\d{1,3}\.\d{1,3}\.\d{1,3}\b',
            r'\b172\.(1[6-9]|2[0-9]|3[0-1])\.\d{1,3}\.\d{1,3}\b',
            r'\b192\.168\.\d{1,3}\.\d{1,3}\b',
        ],
        'severity': Severity.LOW,
        'name': 'Internal IP Address in HTML Comment',
        'cwe_id': 'CWE-200'
    },
    'developer_note': {
        'patterns': [
            r'\b(TODO|FIXME|HACK|XXX)\b',
            r'\bdebug\b',
        ],
        'severity': Severity.INFO,
        'name': 'Developer Note in HTML Comment',
        'cwe_id': 'CWE-615'
    },
}


class CommentsModule(BaseModule):
    """Greps the HTML comments of every page with a body."""

    name = "comments"
    description = "Finds sensitive information in HTML comments"
    elements = frozenset({ElementKind.BODY})
    cwe_id = "CWE-615"

    def __init__(self, framework):
        super().__init__(framework)
        self._compiled = {
            key: [re.compile(p, re.IGNORECASE) for p in config['patterns']]
            for key, config in SENSITIVE_PATTERNS.items()
        }

    async def run(self, page: Page):
        if 'html' not in page.content_type:
            return

        for comment in self._comments(page.body):
            for key, config in SENSITIVE_PATTERNS.items():
                if not any(p.search(comment) for p in self._compiled[key]):
                    continue

                self.log_issue(
                    page,
                    name=config['name'],
                    severity=config['severity'],
                    description=f"An HTML comment on {page.url} discloses information that should not be public.",
                    element=ElementKind.BODY.value,
                    confidence=Confidence.HIGH,
                    evidence=self.truncate(comment, 200),
                    cwe_id=config['cwe_id'],
                    remediation="Remove sensitive comments from production markup."
                )

    @staticmethod
    def _comments(html: str) -> List[str]:
        soup = BeautifulSoup(html, 'lxml')
        return [c.strip() for c in soup.find_all(string=lambda s: isinstance(s, Comment)) if c.strip()]
