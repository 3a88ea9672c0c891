"""
Health map plugin.

Splits the sitemap into URLs with and without issues once auditing is
over.
"""

from typing import Any, Dict

from weaver.scanner.plugins.base import BasePlugin


class HealthmapPlugin(BasePlugin):

    name = "healthmap"
    description = "Lists which URLs of the sitemap have issues and which are clean"

    async def run(self) -> Dict[str, Any]:
        await self.wait_while_framework_running()

        vulnerable = {issue.url for issue in self.framework.auditstore.issues}
        sitemap = self.framework.sitemap

        with_issues = [url for url in sitemap if url in vulnerable]
        without_issues = [url for url in sitemap if url not in vulnerable]

        self.logger.info(f"{len(with_issues)} of {len(sitemap)} URLs have issues")
        return {
            'map': [{'with_issues': url} for url in with_issues] +
                   [{'without_issues': url} for url in without_issues],
            'total': len(sitemap),
            'with_issues': len(with_issues),
            'without_issues': len(without_issues),
        }
