"""Tests for module applicability."""

from weaver.config import ScanOptions
from weaver.scanner.core.dispatch import is_applicable
from weaver.scanner.core.page import Cookie, ElementKind, Form, Link, Page


def module(*kinds):
    return type('Module', (), {'elements': frozenset(kinds)})


URL = 'http://example.com/'

EMPTY_PAGE = Page(url=URL, body='')
FORM_PAGE = Page(url=URL, body='<form></form>', forms=[Form(url=URL, action=URL)])
LINK_PAGE = Page(url=URL + '?a=1', body='x', links=[Link.from_url(URL + '?a=1')])
COOKIE_PAGE = Page(url=URL, body='x', cookies=[Cookie(url=URL, name='session', value='1')])


class TestIsApplicable:
    """Tests for is_applicable()."""

    def test_modules_without_elements_always_run(self):
        assert is_applicable(module(), EMPTY_PAGE, ScanOptions())

    def test_path_and_server_modules_always_run(self):
        options = ScanOptions()

        assert is_applicable(module(ElementKind.PATH), EMPTY_PAGE, options)
        assert is_applicable(module(ElementKind.SERVER), EMPTY_PAGE, options)

    def test_body_modules_need_a_body(self):
        options = ScanOptions()

        assert not is_applicable(module(ElementKind.BODY), EMPTY_PAGE, options)
        assert is_applicable(module(ElementKind.BODY), FORM_PAGE, options)

    def test_element_modules_need_auditing_enabled(self):
        """Test that forms are only audited when the page has some and forms auditing is on."""
        form_module = module(ElementKind.FORM)

        assert not is_applicable(form_module, FORM_PAGE, ScanOptions())
        assert is_applicable(form_module, FORM_PAGE, ScanOptions().audit_element('forms'))
        assert not is_applicable(form_module, LINK_PAGE, ScanOptions().audit_element('forms'))

    def test_links_and_cookies(self):
        options = ScanOptions().audit_element('links', 'cookies')

        assert is_applicable(module(ElementKind.LINK), LINK_PAGE, options)
        assert is_applicable(module(ElementKind.COOKIE), COOKIE_PAGE, options)
        assert not is_applicable(module(ElementKind.COOKIE), LINK_PAGE, options)

    def test_any_matching_kind_is_enough(self):
        options = ScanOptions().audit_element('links')
        assert is_applicable(module(ElementKind.FORM, ElementKind.LINK), LINK_PAGE, options)

    def test_headers(self):
        page = Page(url=URL, body='x', header_elements=[])
        options = ScanOptions().audit_element('headers')

        assert not is_applicable(module(ElementKind.HEADER), page, options)
