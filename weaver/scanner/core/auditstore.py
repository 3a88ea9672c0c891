"""
AuditStore

Results container of a scan: issues, plugin results, sitemap, failures
and timing. Issues only ever grow during a run; the store is finalized
when the Framework reaches cleanup and is read-only afterwards.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from weaver.errors import WeaverError
from weaver.scanner.core.progress import format_duration

logger = logging.getLogger(__name__)


class AuditStore:
    """
    Issues and metadata of one scan.

    Args:
        options: Snapshot (dict) of the ScanOptions the scan ran with
    """

    def __init__(self, options: Optional[Dict[str, Any]] = None):
        self.options = dict(options or {})
        self.issues: List = []
        self.plugins: Dict[str, Dict[str, Any]] = {}
        self.sitemap: List[str] = []
        self.failures: List[str] = []
        self.module_failures: List[Dict[str, str]] = []
        # Crawled pages skipped because the session could not be restored
        self.audit_failures: List[str] = []
        self.start_datetime: Optional[datetime] = None
        self.finish_datetime: Optional[datetime] = None
        self.delta_time = format_duration(0)
        self._finalized = False

    @property
    def finalized(self) -> bool:
        return self._finalized

    def start(self):
        self.start_datetime = datetime.now()

    def add_issue(self, issue):
        if self._finalized:
            raise WeaverError(f"Cannot add issue '{issue.name}' to a finalized AuditStore")
        self.issues.append(issue)

    def add_plugin_results(self, name: str, results: Any):
        if self._finalized:
            raise WeaverError(f"Cannot add results of plugin '{name}' to a finalized AuditStore")
        self.plugins[name] = {'results': results}

    def finalize(self, sitemap: List[str], failures: List[str], module_failures: List[Dict[str, str]],
                 audit_failures: Optional[List[str]] = None):
        """Record the final crawl data and freeze the store."""
        self.sitemap = list(sitemap)
        self.failures = list(failures)
        self.module_failures = list(module_failures)
        self.audit_failures = list(audit_failures or [])
        self.finish_datetime = datetime.now()
        if self.start_datetime:
            self.delta_time = format_duration((self.finish_datetime - self.start_datetime).total_seconds())
        self._finalized = True

    def issues_by_severity(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for issue in self.issues:
            counts[issue.severity.value] = counts.get(issue.severity.value, 0) + 1
        return counts

    def default_filename(self) -> str:
        stamp = (self.finish_datetime or datetime.now()).strftime('%Y-%m-%d_%H-%M-%S')
        return f"weaver_{stamp}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'options': self.options,
            'issues': [issue.to_dict() for issue in self.issues],
            'summary': self.issues_by_severity(),
            'plugins': self.plugins,
            'sitemap': self.sitemap,
            'failures': self.failures,
            'module_failures': self.module_failures,
            'audit_failures': self.audit_failures,
            'start_datetime': self.start_datetime.isoformat() if self.start_datetime else None,
            'finish_datetime': self.finish_datetime.isoformat() if self.finish_datetime else None,
            'delta_time': self.delta_time,
        }
