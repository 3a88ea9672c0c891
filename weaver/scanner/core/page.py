"""
Page and element model.

A Page is an immutable snapshot of one fetched resource together with the
auditable elements parsed out of it.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from weaver.scanner.core.requester import is_text_content
from weaver.scanner.core.url import normalize_url, query_params


class ElementKind(Enum):
    """Element kinds a module can declare interest in."""
    LINK = 'links'
    FORM = 'forms'
    COOKIE = 'cookies'
    HEADER = 'headers'
    BODY = 'body'
    PATH = 'path'
    SERVER = 'server'


# Kinds gated by the audit toggles of the scan options
AUDITABLE_KINDS = (ElementKind.LINK, ElementKind.FORM, ElementKind.COOKIE, ElementKind.HEADER)


@dataclass(frozen=True)
class FormField:
    """Represents an HTML form field."""
    name: str
    field_type: str = 'text'
    value: str = ''
    autocomplete: Optional[str] = None

    @property
    def is_password(self) -> bool:
        return self.field_type == 'password'

    @property
    def is_hidden(self) -> bool:
        return self.field_type == 'hidden'


@dataclass(frozen=True)
class Link:
    """A link with its query parameters as auditable inputs."""
    url: str
    action: str = ''
    inputs: Tuple[Tuple[str, str], ...] = ()

    kind = ElementKind.LINK

    @classmethod
    def from_url(cls, url: str) -> 'Link':
        url = normalize_url(url)
        return cls(url=url, action=url.split('?', 1)[0], inputs=tuple(query_params(url)))


@dataclass(frozen=True)
class Form:
    """Represents an HTML form."""
    url: str
    action: str = ''
    method: str = 'GET'
    fields: Tuple[FormField, ...] = ()
    name: Optional[str] = None
    autocomplete: Optional[str] = None

    kind = ElementKind.FORM

    @property
    def inputs(self) -> Tuple[Tuple[str, str], ...]:
        return tuple((f.name, f.value) for f in self.fields if f.name)

    @property
    def password_fields(self) -> Tuple[FormField, ...]:
        return tuple(f for f in self.fields if f.is_password)

    def field(self, name: str) -> Optional[FormField]:
        for form_field in self.fields:
            if form_field.name == name:
                return form_field
        return None


@dataclass(frozen=True)
class Cookie:
    """A cookie in effect for the page."""
    url: str
    name: str
    value: str = ''

    kind = ElementKind.COOKIE


@dataclass(frozen=True)
class Header:
    """A request header worth auditing on the page."""
    url: str
    name: str
    value: str = ''

    kind = ElementKind.HEADER


@dataclass(frozen=True)
class Page:
    """
    Immutable snapshot of a fetched resource.

    Produced by Page.from_response() (or built directly for manual
    injection into the audit queue) and never mutated afterwards.
    """
    url: str
    code: int = 200
    body: str = ''
    headers: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    content_type: str = 'text/html'
    links: Tuple[Link, ...] = ()
    forms: Tuple[Form, ...] = ()
    cookies: Tuple[Cookie, ...] = ()
    header_elements: Tuple[Header, ...] = ()
    paths: Tuple[str, ...] = ()
    response_time: float = 0.0

    def __post_init__(self):
        # Freeze whatever containers the caller handed in
        object.__setattr__(self, 'headers', MappingProxyType(dict(self.headers)))
        for name in ('links', 'forms', 'cookies', 'header_elements', 'paths'):
            object.__setattr__(self, name, tuple(getattr(self, name)))

    @classmethod
    def from_response(cls, response, cookie_jar=None) -> 'Page':
        """Parse a Response into a Page."""
        from weaver.scanner.core.parser import HTMLParser

        return HTMLParser(response.url).page_from_response(response, cookie_jar)

    def elements(self, kind: ElementKind) -> tuple:
        """Elements of the given auditable kind."""
        return {
            ElementKind.LINK: self.links,
            ElementKind.FORM: self.forms,
            ElementKind.COOKIE: self.cookies,
            ElementKind.HEADER: self.header_elements,
        }.get(kind, ())

    def has_elements(self, kind: ElementKind) -> bool:
        return len(self.elements(kind)) > 0

    @property
    def has_body(self) -> bool:
        return bool(self.body)

    @property
    def is_text(self) -> bool:
        return is_text_content(self.content_type)

    @property
    def query_vars(self) -> dict:
        return dict(query_params(self.url))
