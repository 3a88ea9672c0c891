"""
JSON report.
"""

import json

from weaver.scanner.reports.base import BaseReport


class JSONReport(BaseReport):
    """Serializes the whole AuditStore."""

    name = "json"
    description = "Exports the audit results as JSON"
    supports_outfile = True
    extension = 'json'

    def render(self, auditstore) -> str:
        return json.dumps(auditstore.to_dict(), indent=2, default=str)
