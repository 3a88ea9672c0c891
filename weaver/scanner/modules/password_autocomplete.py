"""
Password Autocomplete Module

Flags forms whose password fields may be remembered by the browser.
"""

from weaver.scanner.core.page import ElementKind, Page
from weaver.scanner.modules.base import BaseModule, Severity, Confidence


class PasswordAutocompleteModule(BaseModule):
    """Reports forms with password fields that don't disable autocomplete."""

    name = "password_autocomplete"
    description = "Finds password fields with autocomplete enabled"
    elements = frozenset({ElementKind.FORM})
    cwe_id = "CWE-522"

    async def run(self, page: Page):
        for form in page.forms:
            if not form.password_fields:
                continue
            if (form.autocomplete or '').lower() == 'off':
                continue

            for password_field in form.password_fields:
                if (password_field.autocomplete or '').lower() in ('off', 'new-password'):
                    continue

                self.log_issue(
                    page,
                    name="Password Field With Auto-Complete",
                    severity=Severity.LOW,
                    description=(
                        f"Password field '{password_field.name}' of the form submitting to "
                        f"{form.action} does not disable autocomplete, so browsers may store "
                        "the credentials."
                    ),
                    element=ElementKind.FORM.value,
                    confidence=Confidence.CONFIRMED,
                    parameter=password_field.name,
                    method=form.method,
                    remediation="Set autocomplete=\"off\" on the form or on the password field."
                )
