"""
Security Headers Module

Checks server responses for missing or misconfigured security headers
and for headers disclosing the server's software stack.
"""

from typing import Dict, Optional, Set, Tuple
import logging

from weaver.scanner.core.page import ElementKind, Page
from weaver.scanner.core.url import hostname
from weaver.scanner.modules.base import BaseModule, Severity, Confidence

logger = logging.getLogger(__name__)


# Security headers to check
SECURITY_HEADERS = {
    'Strict-Transport-Security': {
        'name': 'HTTP Strict Transport Security (HSTS)',
        'severity': Severity.MEDIUM,
        'description': 'HSTS header is missing. This header forces browsers to use HTTPS, preventing downgrade attacks and cookie hijacking.',
        'remediation': "Add header: Strict-Transport-Security: max-age=31536000; includeSubDomains",
        'cwe_id': 'CWE-319',
        'check_https_only': True
    },
    'Content-Security-Policy': {
        'name': 'Content Security Policy (CSP)',
        'severity': Severity.MEDIUM,
        'description': 'CSP header is missing. CSP helps prevent XSS attacks by controlling which resources can be loaded.',
        'remediation': "Add header: Content-Security-Policy: default-src 'self'",
        'cwe_id': 'CWE-693',
        'check_https_only': False
    },
    'X-Content-Type-Options': {
        'name': 'X-Content-Type-Options',
        'severity': Severity.LOW,
        'description': 'X-Content-Type-Options header is missing. This header prevents MIME type sniffing attacks.',
        'remediation': "Add header: X-Content-Type-Options: nosniff",
        'cwe_id': 'CWE-693',
        'check_https_only': False
    },
    'X-Frame-Options': {
        'name': 'X-Frame-Options (Clickjacking Protection)',
        'severity': Severity.MEDIUM,
        'description': 'X-Frame-Options header is missing. This header prevents clickjacking by controlling whether the page can be framed.',
        'remediation': "Add header: X-Frame-Options: DENY or SAMEORIGIN",
        'cwe_id': 'CWE-1021',
        'check_https_only': False
    },
}

# Headers that reveal the software stack
DISCLOSURE_HEADERS = ('Server', 'X-Powered-By', 'X-AspNet-Version')


class SecurityHeadersModule(BaseModule):
    """
    Server-level check, dispatched for every page.

    Each finding is reported once per host.
    """

    name = "security_headers"
    description = "Checks for missing or misconfigured security headers"
    elements = frozenset({ElementKind.SERVER})
    cwe_id = "CWE-693"

    def __init__(self, framework):
        super().__init__(framework)
        self._reported: Set[Tuple[str, str]] = set()

    async def run(self, page: Page):
        host = hostname(page.url)
        is_https = page.url.startswith('https://')

        for header_name, config in SECURITY_HEADERS.items():
            if config['check_https_only'] and not is_https:
                continue

            value = self._get_header(page.headers, header_name)
            if not value:
                self._report_once(
                    host, page,
                    name=f"Missing {config['name']}",
                    severity=config['severity'],
                    description=config['description'],
                    confidence=Confidence.CONFIRMED,
                    cwe_id=config['cwe_id'],
                    remediation=config['remediation'],
                    references=[f"https://developer.mozilla.org/en-US/docs/Web/HTTP/Headers/{header_name}"]
                )
                continue

            problem = self._check_misconfiguration(header_name, value)
            if problem:
                self._report_once(
                    host, page,
                    name=f"Misconfigured {config['name']}",
                    severity=Severity.LOW,
                    description=problem,
                    confidence=Confidence.CONFIRMED,
                    evidence=f"{header_name}: {self.truncate(value, 200)}",
                    remediation=config['remediation']
                )

        for header_name in DISCLOSURE_HEADERS:
            value = self._get_header(page.headers, header_name)
            if value:
                self._report_once(
                    host, page,
                    name=f"{header_name} Header Information Disclosure",
                    severity=Severity.INFO,
                    description=f"The {header_name} header reveals software information: {value}",
                    confidence=Confidence.CONFIRMED,
                    evidence=f"{header_name}: {value}",
                    cwe_id='CWE-200',
                    remediation=f"Remove or minimize the {header_name} header."
                )

    def _report_once(self, host: str, page: Page, name: str, **kwargs):
        key = (host, name)
        if key in self._reported:
            return
        self._reported.add(key)
        self.log_issue(page, name=name, **kwargs)

    @staticmethod
    def _get_header(headers: Dict, name: str) -> Optional[str]:
        """Get header value (case-insensitive)."""
        for key, value in headers.items():
            if key.lower() == name.lower():
                return value
        return None

    @staticmethod
    def _check_misconfiguration(header_name: str, value: str) -> Optional[str]:
        value_lower = value.lower().strip()

        if header_name == 'X-Content-Type-Options' and value_lower != 'nosniff':
            return f"X-Content-Type-Options is set to '{value}' instead of 'nosniff'."

        if header_name == 'X-Frame-Options' and value_lower not in ('deny', 'sameorigin'):
            return f"X-Frame-Options is set to '{value}'. Recommended values are DENY or SAMEORIGIN."

        if header_name == 'Strict-Transport-Security' and 'max-age=' in value_lower:
            try:
                max_age = int(value_lower.split('max-age=')[1].split(';')[0])
            except (ValueError, IndexError):
                return None
            if max_age < 31536000:
                return f"HSTS max-age is set to {max_age} seconds, less than one year."

        if header_name == 'Content-Security-Policy':
            unsafe = [d for d in ("'unsafe-inline'", "'unsafe-eval'") if d in value_lower]
            if unsafe:
                return f"CSP contains unsafe directives: {', '.join(unsafe)}."

        return None
