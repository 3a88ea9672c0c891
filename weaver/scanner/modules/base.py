"""
Base Module for Weaver audit modules

A module is an opaque unit of analysis: it receives a Page, decides what is
wrong with it and reports Issues through log_issue(). The elements it
declares decide which pages it is dispatched to.
"""

from abc import ABC, abstractmethod
from typing import List, Dict, FrozenSet, Optional, Any
from dataclasses import dataclass, field
from enum import Enum
import logging

from weaver.scanner.core.page import ElementKind, Page

logger = logging.getLogger(__name__)


class Severity(Enum):
    """Issue severity levels."""
    CRITICAL = 'critical'
    HIGH = 'high'
    MEDIUM = 'medium'
    LOW = 'low'
    INFO = 'info'


class Confidence(Enum):
    """Detection confidence levels."""
    CONFIRMED = 'confirmed'
    HIGH = 'high'
    MEDIUM = 'medium'
    LOW = 'low'


@dataclass
class Issue:
    """
    Represents an issue logged by a module.
    """
    name: str
    module: str
    severity: Severity
    url: str
    description: str
    element: Optional[str] = None
    confidence: Confidence = Confidence.MEDIUM
    parameter: Optional[str] = None
    method: str = 'GET'
    evidence: Optional[str] = None
    cwe_id: Optional[str] = None
    remediation: Optional[str] = None
    references: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'name': self.name,
            'module': self.module,
            'severity': self.severity.value,
            'confidence': self.confidence.value,
            'url': self.url,
            'element': self.element,
            'parameter': self.parameter,
            'method': self.method,
            'description': self.description,
            'evidence': self.evidence,
            'cwe_id': self.cwe_id,
            'remediation': self.remediation,
            'references': self.references
        }


class BaseModule(ABC):
    """
    Abstract base class for audit modules.

    Each module must define:
    - name: Registry name
    - description: One-line description
    - elements: Element kinds it audits (empty means every page)
    - run(): The analysis itself
    """

    name: str = "base"
    description: str = "Base audit module"
    elements: FrozenSet[ElementKind] = frozenset()
    cwe_id: str = ""

    def __init__(self, framework):
        """
        Initialize the module.

        Args:
            framework: The Framework the module is auditing for
        """
        self.framework = framework
        self.http = framework.requester
        self.logger = logging.getLogger(f"weaver.module.{self.name}")

    @abstractmethod
    async def run(self, page: Page):
        """
        Audit a single page.

        Issues are reported with log_issue(); the return value is ignored.
        """
        pass

    def log_issue(
            self,
            page: Page,
            name: str,
            severity: Severity,
            description: str,
            **kwargs
    ) -> Issue:
        """
        Create an Issue and record it in the Framework's AuditStore.

        Args:
            page: Page the issue was found on
            name: Issue name
            severity: Severity level
            description: Description of the issue
            **kwargs: Additional Issue fields

        Returns:
            The recorded Issue
        """
        kwargs.setdefault('cwe_id', self.cwe_id or None)
        issue = Issue(
            name=name,
            module=self.name,
            severity=severity,
            url=kwargs.pop('url', page.url),
            description=description,
            **kwargs
        )
        self.framework.auditstore.add_issue(issue)
        self.logger.info(f"[{severity.value}] {name} at {issue.url}")
        return issue

    @classmethod
    def info(cls) -> Dict[str, Any]:
        return {
            'name': cls.name,
            'description': cls.description,
            'elements': sorted(kind.value for kind in cls.elements),
        }

    @staticmethod
    def truncate(text: str, max_length: int = 500) -> str:
        """Truncate text to maximum length."""
        if len(text) <= max_length:
            return text
        return text[:max_length] + '...'
