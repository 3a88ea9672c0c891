"""Tests for path extractors and the HTML parser."""

from bs4 import BeautifulSoup

from weaver.scanner.core.extractors import (
    run_extractors, AnchorsExtractor, HeadersExtractor, ScriptsExtractor
)
from weaver.scanner.core.page import ElementKind
from weaver.scanner.core.parser import HTMLParser
from weaver.scanner.core.requester import Response

BASE = 'http://example.com/dir/page'

SAMPLE_HTML = """
<html>
<head>
    <link rel="stylesheet" href="/static/site.css">
    <meta http-equiv="refresh" content="5; url=/refreshed">
    <script src="app.js"></script>
</head>
<body>
    <a href="/one">One</a>
    <a href="two?x=1">Two</a>
    <a href="/one#dup">Duplicate</a>
    <a href="javascript:void(0)">JS</a>
    <a href="mailto:a@example.com">Mail</a>
    <a href="#top">Top</a>
    <area href="/map">
    <iframe src="/frame"></iframe>
    <form action="/submit" method="post">
        <input type="text" name="user" value="bob">
        <input type="password" name="pass">
        <select name="role"><option value="a">A</option></select>
    </form>
</body>
</html>
"""


def html_response(body=SAMPLE_HTML, url=BASE, headers=None):
    headers = headers if headers is not None else {'Content-Type': 'text/html; charset=utf-8'}
    return Response(url=url, status=200, headers=headers, body=body, elapsed=0.01)


class TestRunExtractors:
    """Tests for run_extractors()."""

    def test_extracts_all_path_sources(self):
        response = html_response()
        paths = run_extractors(response, BeautifulSoup(response.body, 'lxml'))

        expected = {
            'http://example.com/one',
            'http://example.com/dir/two?x=1',
            'http://example.com/map',
            'http://example.com/frame',
            'http://example.com/submit',
            'http://example.com/static/site.css',
            'http://example.com/dir/app.js',
            'http://example.com/refreshed',
        }
        assert set(paths) == expected

    def test_no_duplicates(self):
        response = html_response()
        paths = run_extractors(response, BeautifulSoup(response.body, 'lxml'))

        assert len(paths) == len(set(paths))

    def test_skips_non_navigable_links(self):
        response = html_response()
        paths = run_extractors(response, BeautifulSoup(response.body, 'lxml'))

        assert not any(p.startswith(('javascript:', 'mailto:')) for p in paths)
        assert BASE not in paths

    def test_headers_apply_to_any_content_type(self):
        """Test that Location headers are picked up without an HTML document."""
        response = html_response(body='', headers={
            'Content-Type': 'application/octet-stream',
            'Location': '/moved',
        })
        assert run_extractors(response) == ['http://example.com/moved']

    def test_custom_extractor_list(self):
        response = html_response()
        document = BeautifulSoup(response.body, 'lxml')

        assert run_extractors(response, document, [ScriptsExtractor]) == ['http://example.com/dir/app.js']

    def test_html_extractors_need_a_document(self):
        response = html_response()
        assert run_extractors(response, None, [AnchorsExtractor, HeadersExtractor]) == []


class TestHTMLParser:
    """Tests for building Pages from responses."""

    def test_page_from_response(self):
        response = html_response()
        page = HTMLParser(response.url).page_from_response(response)

        assert page.url == BASE
        assert page.code == 200
        assert page.has_body
        assert 'http://example.com/one' in page.paths

    def test_forms(self):
        page = HTMLParser(BASE).page_from_response(html_response())

        assert len(page.forms) == 1
        form = page.forms[0]
        assert form.action == 'http://example.com/submit'
        assert form.method == 'POST'
        assert form.field('user').value == 'bob'
        assert [f.name for f in form.password_fields] == ['pass']
        assert form.field('role') is not None

    def test_links_are_same_host_urls_with_queries(self):
        page = HTMLParser(BASE).page_from_response(html_response())

        assert [link.url for link in page.links] == ['http://example.com/dir/two?x=1']
        assert page.links[0].inputs == (('x', '1'),)

    def test_elements_by_kind(self):
        page = HTMLParser(BASE).page_from_response(html_response())

        assert page.has_elements(ElementKind.FORM)
        assert page.has_elements(ElementKind.HEADER)
        assert not page.has_elements(ElementKind.COOKIE)
