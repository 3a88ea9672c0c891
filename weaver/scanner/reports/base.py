"""
Base Report for Weaver

A report renders a finalized AuditStore. Reports that support an outfile
can also be rendered to a string with Framework.report_as().
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)


class BaseReport(ABC):
    """
    Abstract base class for reports.

    Each report must define:
    - name: Registry name
    - description: One-line description
    - supports_outfile: Whether the output can be written to a file
    - render(): The AuditStore as a string
    """

    name: str = "base"
    description: str = "Base report"
    supports_outfile: bool = True
    extension: str = 'txt'

    def __init__(self, auditstore, outfile: Optional[str] = None):
        self.auditstore = auditstore
        self.outfile = outfile
        self.logger = logging.getLogger(f"weaver.report.{self.name}")

    @abstractmethod
    def render(self, auditstore) -> str:
        pass

    def run(self) -> str:
        """Render the report and write it to the outfile."""
        output = self.render(self.auditstore)
        outfile = self.outfile or f"{self.auditstore.default_filename()}.{self.extension}"

        with open(outfile, 'w', encoding='utf-8') as f:
            f.write(output)

        self.logger.info(f"Saved {self.name} report to {outfile}")
        return outfile

    @classmethod
    def info(cls) -> Dict[str, Any]:
        return {
            'name': cls.name,
            'description': cls.description,
            'supports_outfile': cls.supports_outfile,
        }
