"""
Path extractors.

Each extractor pulls candidate paths out of a fetched resource. Extractors
declare the content types they understand; run_extractors() applies every
matching one and returns absolute, normalized, de-duplicated URLs. Scope
filtering happens later, in the Spider.
"""

import re
from typing import Iterable, List, Optional, Tuple, Type
import logging

from bs4 import BeautifulSoup

from weaver.scanner.core.url import to_absolute

logger = logging.getLogger(__name__)

SKIP_SCHEMES = ('javascript:', 'mailto:', 'tel:', 'data:', '#')


class PathExtractor:
    """Base class. content_types of None means every content type."""

    name = 'base'
    content_types: Optional[Tuple[str, ...]] = ('html',)

    def handles(self, content_type: str) -> bool:
        if self.content_types is None:
            return True
        content_type = (content_type or 'text/html').lower()
        return any(ct in content_type for ct in self.content_types)

    def run(self, document: Optional[BeautifulSoup], response) -> Iterable[str]:
        raise NotImplementedError


class AnchorsExtractor(PathExtractor):
    """<a href> and <area href>."""

    name = 'anchors'

    def run(self, document, response):
        for tag in document.find_all(['a', 'area'], href=True):
            yield tag['href']


class FormsExtractor(PathExtractor):
    """Form actions."""

    name = 'forms'

    def run(self, document, response):
        for tag in document.find_all('form', action=True):
            yield tag['action']


class FramesExtractor(PathExtractor):
    """<frame src> and <iframe src>."""

    name = 'frames'

    def run(self, document, response):
        for tag in document.find_all(['frame', 'iframe'], src=True):
            yield tag['src']


class LinksExtractor(PathExtractor):
    """<link href> elements (stylesheets, alternates, feeds)."""

    name = 'links'

    def run(self, document, response):
        for tag in document.find_all('link', href=True):
            yield tag['href']


class ScriptsExtractor(PathExtractor):
    """<script src>."""

    name = 'scripts'

    def run(self, document, response):
        for tag in document.find_all('script', src=True):
            yield tag['src']


class MetaRefreshExtractor(PathExtractor):
    """<meta http-equiv="refresh" content="0; url=...">."""

    name = 'meta_refresh'
    URL_IN_CONTENT = re.compile(r'url\s*=\s*[\'"]?([^\'";]+)', re.IGNORECASE)

    def run(self, document, response):
        for tag in document.find_all('meta'):
            if (tag.get('http-equiv') or '').lower() != 'refresh':
                continue
            match = self.URL_IN_CONTENT.search(tag.get('content', ''))
            if match:
                yield match.group(1).strip()


class HeadersExtractor(PathExtractor):
    """Location and Content-Location response headers, for any content type."""

    name = 'headers'
    content_types = None

    def run(self, document, response):
        for name in ('Location', 'Content-Location'):
            value = response.get_header(name)
            if value:
                yield value


DEFAULT_EXTRACTORS: List[Type[PathExtractor]] = [
    AnchorsExtractor,
    FormsExtractor,
    FramesExtractor,
    LinksExtractor,
    ScriptsExtractor,
    MetaRefreshExtractor,
    HeadersExtractor,
]


def run_extractors(response, document: Optional[BeautifulSoup] = None,
                   extractors: Optional[List[Type[PathExtractor]]] = None) -> List[str]:
    """
    Run every extractor that handles the response's content type.

    Returns absolute, normalized URLs in discovery order without duplicates.
    """
    paths = []
    seen = set()

    for extractor_cls in extractors or DEFAULT_EXTRACTORS:
        extractor = extractor_cls()
        if not extractor.handles(response.content_type):
            continue
        if extractor.content_types is not None and document is None:
            continue

        for raw in extractor.run(document, response):
            raw = (raw or '').strip()
            if not raw or raw.lower().startswith(SKIP_SCHEMES):
                continue
            try:
                url = to_absolute(raw, response.url)
            except ValueError as e:
                logger.debug(f"Skipping malformed path {raw!r} on {response.url}: {e}")
                continue
            if url not in seen:
                seen.add(url)
                paths.append(url)

    return paths
