"""
HTML Parser for Weaver

Turns a Response into a Page:
- Forms and their fields
- Links carrying query parameters
- Cookies in effect for the page
- Auditable request headers
- Candidate paths for the crawler (via the path extractors)
"""

from typing import List, Optional
from urllib.parse import urljoin
from bs4 import BeautifulSoup
import logging

from weaver.scanner.core.extractors import run_extractors
from weaver.scanner.core.page import Page, Form, FormField, Link, Cookie, Header
from weaver.scanner.core.url import normalize_url, hostname

logger = logging.getLogger(__name__)


class HTMLParser:
    """
    Parser for a single fetched resource.

    Non-HTML responses still produce a Page: it simply carries no forms
    and only the paths found by content-type agnostic extractors.
    """

    def __init__(self, base_url: str):
        """
        Initialize parser with base URL.

        Args:
            base_url: URL of the resource, used to resolve relative links
        """
        self.base_url = base_url
        self.base_domain = hostname(base_url)

    def document(self, html: str) -> BeautifulSoup:
        try:
            return BeautifulSoup(html, 'lxml')
        except Exception:
            # Fallback to html.parser if lxml is unavailable or chokes
            return BeautifulSoup(html, 'html.parser')

    def page_from_response(self, response, cookie_jar=None) -> Page:
        """Build an immutable Page from a Response."""
        document = self.document(response.body) if response.is_html and response.body else None

        paths = run_extractors(response, document)
        forms = self._extract_forms(document, response.url) if document is not None else []
        links = self._extract_links(paths, response.url)

        return Page(
            url=normalize_url(response.url),
            code=response.status,
            body=response.body,
            headers=response.headers,
            content_type=response.content_type,
            links=links,
            forms=forms,
            cookies=self._extract_cookies(response, cookie_jar),
            header_elements=[Header(url=response.url, name='Referer', value=response.url)],
            paths=paths,
            response_time=response.elapsed,
        )

    def _extract_forms(self, soup: BeautifulSoup, page_url: str) -> List[Form]:
        """Extract all forms with their fields."""
        forms = []

        for form_tag in soup.find_all('form'):
            action = form_tag.get('action', '')
            action = urljoin(page_url, action) if action else page_url

            fields = []
            for input_tag in form_tag.find_all('input'):
                field = self._parse_input_field(input_tag)
                if field:
                    fields.append(field)

            for textarea in form_tag.find_all('textarea'):
                name = textarea.get('name', '')
                fields.append(FormField(
                    name=name,
                    field_type='textarea',
                    value=textarea.string or ''
                ))

            for select in form_tag.find_all('select'):
                first_option = select.find('option')
                fields.append(FormField(
                    name=select.get('name', ''),
                    field_type='select',
                    value=first_option.get('value', '') if first_option else ''
                ))

            forms.append(Form(
                url=page_url,
                action=normalize_url(action),
                method=form_tag.get('method', 'GET').upper(),
                fields=tuple(fields),
                name=form_tag.get('name') or form_tag.get('id'),
                autocomplete=form_tag.get('autocomplete')
            ))

        return forms

    def _parse_input_field(self, input_tag) -> Optional[FormField]:
        """Parse an input tag into FormField."""
        field_type = input_tag.get('type', 'text').lower()
        if field_type in ('submit', 'button', 'image', 'reset'):
            return None

        return FormField(
            name=input_tag.get('name', ''),
            field_type=field_type,
            value=input_tag.get('value', ''),
            autocomplete=input_tag.get('autocomplete')
        )

    def _extract_links(self, paths: List[str], page_url: str) -> List[Link]:
        """Links are the extracted same-host paths that carry parameters."""
        links = []
        for url in [page_url] + paths:
            if '?' not in url or hostname(url) != self.base_domain:
                continue
            link = Link.from_url(url)
            if link.inputs and link not in links:
                links.append(link)
        return links

    def _extract_cookies(self, response, cookie_jar=None) -> List[Cookie]:
        """Cookies set by the response plus those the jar would send."""
        cookies = {}
        if cookie_jar is not None:
            for morsel in cookie_jar:
                if not morsel['domain'] or self.base_domain.endswith(morsel['domain'].lstrip('.')):
                    cookies[morsel.key] = morsel.value
        cookies.update(response.cookies)

        return [Cookie(url=response.url, name=name, value=value)
                for name, value in cookies.items()]
