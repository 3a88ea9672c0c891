"""
Terminal report.
"""

import click

from weaver.scanner.modules.base import Severity
from weaver.scanner.reports.base import BaseReport

SEVERITY_COLORS = {
    Severity.CRITICAL: 'magenta',
    Severity.HIGH: 'red',
    Severity.MEDIUM: 'yellow',
    Severity.LOW: 'blue',
    Severity.INFO: 'white',
}


class StdoutReport(BaseReport):
    """Prints a summary of the results to the terminal."""

    name = "stdout"
    description = "Prints the results to the terminal"
    supports_outfile = False

    def render(self, auditstore) -> str:
        lines = [
            f"Weaver audit of {auditstore.options.get('url') or '(no url)'}",
            f"Duration: {auditstore.delta_time}",
            f"Sitemap: {len(auditstore.sitemap)} URLs, failures: {len(auditstore.failures)}",
            "",
        ]

        if not auditstore.issues:
            lines.append("No issues found.")

        for issue in auditstore.issues:
            label = click.style(f"[{issue.severity.value.upper()}]", fg=SEVERITY_COLORS[issue.severity], bold=True)
            lines.append(f"{label} {issue.name}")
            lines.append(f"    URL: {issue.url}")
            if issue.parameter:
                lines.append(f"    Parameter: {issue.parameter}")
            if issue.evidence:
                lines.append(f"    Evidence: {issue.evidence}")

        for url in auditstore.audit_failures:
            lines.append(click.style(f"Not audited, login failed: {url}", fg='yellow'))

        for failure in auditstore.module_failures:
            lines.append(click.style(
                f"Module '{failure['module']}' failed on {failure['url']}: {failure['error']}", fg='red'
            ))

        for name, plugin in auditstore.plugins.items():
            lines.append(f"Plugin {name}: {plugin['results']}")

        return "\n".join(lines)

    def run(self):
        click.echo(self.render(self.auditstore))
        return None
