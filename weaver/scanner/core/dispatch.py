"""
Module applicability.

Decides whether a module should run against a page purely from the
element kinds the module declares, the page's contents and the audit
toggles of the scan options.
"""

from weaver.scanner.core.page import ElementKind, AUDITABLE_KINDS, Page


def is_applicable(module_cls, page: Page, options) -> bool:
    """
    Args:
        module_cls: Module class (or instance) with an `elements` frozenset
        page: Page about to be audited
        options: ScanOptions with the audit toggles

    Returns:
        True when the module should run against the page
    """
    elements = frozenset(getattr(module_cls, 'elements', None) or ())

    if not elements:
        return True

    if ElementKind.PATH in elements or ElementKind.SERVER in elements:
        return True

    if ElementKind.BODY in elements and page.has_body:
        return True

    for kind in AUDITABLE_KINDS:
        if kind in elements and options.audits(kind.value) and page.has_elements(kind):
            return True

    return False
