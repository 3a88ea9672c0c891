"""
URL normalization helpers.

Every URL the crawler stores goes through normalize_url() first so that
two addresses compare equal iff their normalized strings match.
"""

import posixpath
import re
from typing import List, Optional, Tuple
from urllib.parse import urlsplit, urlunsplit, urljoin, quote, unquote, parse_qsl

DEFAULT_PORTS = {'http': 80, 'https': 443}

# RFC 3986 unreserved characters never need escaping
_UNRESERVED = 'ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-._~'
_PATH_SAFE = "/!$&'()*+,=:@"
_QUERY_SAFE = "/?!$'()*+,;=:@&"

_ESCAPE = re.compile(r'%([0-9A-Fa-f]{2})')
_STRAY_PERCENT = re.compile(r'%(?![0-9A-Fa-f]{2})')


def _canonical_escapes(component: str, safe: str) -> str:
    """Decode escapes of unreserved characters, quote everything unsafe."""

    def _fix(match):
        char = chr(int(match.group(1), 16))
        if char in _UNRESERVED:
            return char
        return '%' + match.group(1).upper()

    component = _STRAY_PERCENT.sub('%25', component)
    component = _ESCAPE.sub(_fix, component)
    # Quote raw unsafe characters while keeping the existing escapes intact
    return quote(component, safe=safe + '%')


def _strip_path_params(path: str) -> str:
    """Drop ';param' suffixes from every path segment."""
    if ';' not in path:
        return path
    return '/'.join(segment.split(';', 1)[0] for segment in path.split('/'))


def _resolve_dots(path: str) -> str:
    if not path:
        return '/'
    trailing = path.endswith('/') and path != '/'
    resolved = posixpath.normpath(path)
    if resolved.startswith('//'):
        resolved = '/' + resolved.lstrip('/')
    if resolved == '.':
        resolved = '/'
    if trailing and not resolved.endswith('/'):
        resolved += '/'
    return resolved


def normalize_url(url: str) -> str:
    """
    Normalize an absolute URL.

    Lower-cases scheme and host, drops default ports and fragments, strips
    path parameters, canonicalizes percent-encoding and resolves dot
    segments. The query string keeps its parameter order.
    """
    parts = urlsplit(url.strip())
    scheme = parts.scheme.lower()

    host = (parts.hostname or '').lower()
    try:
        port = parts.port
    except ValueError:
        port = None
    netloc = host
    if parts.username:
        auth = parts.username
        if parts.password:
            auth += ':' + parts.password
        netloc = f"{auth}@{netloc}"
    if port and DEFAULT_PORTS.get(scheme) != port:
        netloc += f":{port}"

    path = _strip_path_params(parts.path)
    path = _canonical_escapes(path, _PATH_SAFE)
    path = _resolve_dots(path) if scheme in DEFAULT_PORTS else path

    query = _canonical_escapes(parts.query, _QUERY_SAFE) if parts.query else ''

    return urlunsplit((scheme, netloc, path, query, ''))


def to_absolute(path: str, base: str) -> str:
    """Resolve a (possibly relative) path against base and normalize it."""
    return normalize_url(urljoin(base, path.strip()))


def hostname(url: str) -> str:
    return (urlsplit(url).hostname or '').lower()


def query_params(url: str) -> List[Tuple[str, str]]:
    return parse_qsl(urlsplit(url).query, keep_blank_values=True)


def query_shape(url: str) -> Optional[str]:
    """
    Structural key of a URL: scheme, host, path and sorted parameter names.

    Returns None for URLs without a query string since those never count
    as redundant.
    """
    parts = urlsplit(url)
    params = query_params(url)
    if not params:
        return None
    names = ','.join(sorted({name for name, _ in params}))
    return f"{parts.scheme}://{parts.netloc}{parts.path}?{names}"


def path_extension(url: str) -> str:
    """Lower-cased file extension of the URL path ('' when there is none)."""
    path = unquote(urlsplit(url).path)
    _, ext = posixpath.splitext(path)
    return ext.lower()
