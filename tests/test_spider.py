"""Tests for the Spider against the local test site."""

import asyncio

import pytest

from weaver.scanner.core.page import Page
from weaver.scanner.core.requester import Response
from weaver.scanner.core.spider import Spider, SpiderStatus

pytest_plugins = ('pytest_asyncio',)

CRAWL_PATHS = ['/crawl/', '/crawl/a', '/crawl/b', '/crawl/c', '/crawl/app.js', '/crawl/missing']


class TestSpiderCrawl:
    """Tests for link following and the sitemap."""

    @pytest.mark.asyncio
    async def test_crawls_the_link_graph(self, make_options, site_url):
        """Test that every in-scope page is visited exactly once."""
        spider = Spider(make_options('/crawl/'))
        sitemap = await spider.run()

        assert set(sitemap) == {site_url(p) for p in CRAWL_PATHS}
        assert len(sitemap) == len(set(sitemap))
        assert spider.is_done
        assert spider.status == SpiderStatus.DONE

    @pytest.mark.asyncio
    async def test_fancy_sitemap_records_status_codes(self, make_options, site_url):
        """Test that non-2xx pages are recorded with their codes."""
        spider = Spider(make_options('/crawl/'))
        await spider.run()

        fancy = spider.fancy_sitemap
        assert fancy[site_url('/crawl/')] == 200
        assert fancy[site_url('/crawl/missing')] == 404

    @pytest.mark.asyncio
    async def test_ignores_foreign_and_non_http_links(self, make_options):
        """Test that other domains, mailto: and javascript: links are skipped."""
        spider = Spider(make_options('/crawl/'))
        sitemap = await spider.run()

        assert not any('external.invalid' in url for url in sitemap)
        assert all(url.startswith('http://127.0.0.1') for url in sitemap)

    @pytest.mark.asyncio
    async def test_returns_none_when_crawling_is_disabled(self, make_options):
        """Test that run() is a no-op when crawling is disabled."""
        options = make_options('/crawl/')
        options.do_not_crawl()
        spider = Spider(options)

        assert await spider.run() is None
        assert spider.sitemap == []

    @pytest.mark.asyncio
    async def test_extend_paths_seed_the_frontier(self, make_options, site_url):
        """Test that extend_paths are crawled even when nothing links to them."""
        spider = Spider(make_options('/crawl/', extend_paths=['/extra']))
        sitemap = await spider.run()

        assert site_url('/extra') in sitemap

    @pytest.mark.asyncio
    async def test_restrict_paths_replace_the_crawl(self, make_options, site_url):
        """Test that only the restrict paths are visited."""
        spider = Spider(make_options('/crawl/', restrict_paths=['/crawl/a']))
        sitemap = await spider.run()

        assert sitemap == [site_url('/crawl/a')]

    @pytest.mark.asyncio
    async def test_depth_limit(self, make_options, site_url):
        """Test that links beyond depth_limit are not followed."""
        spider = Spider(make_options('/crawl/', depth_limit=1))
        sitemap = await spider.run()

        assert set(sitemap) == {site_url('/crawl/'), site_url('/crawl/a'), site_url('/crawl/b')}

    @pytest.mark.asyncio
    async def test_exclude_patterns(self, make_options, site_url):
        """Test that excluded URLs and everything only they link to are skipped."""
        spider = Spider(make_options('/crawl/', exclude=['/crawl/b']))
        sitemap = await spider.run()

        assert site_url('/crawl/b') not in sitemap
        assert site_url('/crawl/app.js') not in sitemap
        assert site_url('/crawl/c') in sitemap

    @pytest.mark.asyncio
    async def test_include_patterns(self, make_options, site_url):
        """Test that only URLs matching an include pattern are followed."""
        spider = Spider(make_options('/crawl/', include=[r'/crawl/a$']))
        sitemap = await spider.run()

        assert set(sitemap) == {site_url('/crawl/'), site_url('/crawl/a')}

    @pytest.mark.asyncio
    async def test_link_count_limit_of_one(self, make_options, site_url):
        """Test that a limit of 1 only visits the seed."""
        spider = Spider(make_options('/crawl/', link_count_limit=1))
        sitemap = await spider.run()

        assert sitemap == [site_url('/crawl/')]

    @pytest.mark.asyncio
    async def test_link_count_limit(self, make_options):
        """Test that the limit caps the total number of fetches."""
        spider = Spider(make_options('/crawl/', link_count_limit=3))
        sitemap = await spider.run()

        assert len(sitemap) == 3

    @pytest.mark.asyncio
    async def test_path_parameters_are_ignored(self, make_options, site_url):
        """Test that ;jsessionid variants collapse into one URL."""
        spider = Spider(make_options('/params/'))
        sitemap = await spider.run()

        assert set(sitemap) == {site_url('/params/'), site_url('/params/page')}

    @pytest.mark.asyncio
    async def test_cookies_are_preserved(self, make_options, site_url):
        """Test that cookies set by one page are sent with later requests."""
        spider = Spider(make_options('/cookies/set'))
        sitemap = await spider.run()

        assert site_url('/cookies/ok') in sitemap


class TestSpiderRedirects:
    """Tests for redirect handling."""

    @pytest.mark.asyncio
    async def test_follows_in_scope_redirects(self, make_options, site_url):
        """Test that the redirect is logged and its target crawled."""
        spider = Spider(make_options('/redirect/start'))
        sitemap = await spider.run()

        assert sitemap == [site_url('/redirect/target')]
        assert spider.redirects == [site_url('/redirect/start')]

    @pytest.mark.asyncio
    async def test_redirect_to_a_foreign_domain(self, make_options, site_url):
        """Test that foreign targets are never fetched but the redirect is logged."""
        spider = Spider(make_options('/redirect/foreign'))
        sitemap = await spider.run()

        assert sitemap == []
        assert spider.redirects == [site_url('/redirect/foreign')]

    @pytest.mark.asyncio
    async def test_redirect_limit_stops_the_chain(self, make_options, site_url):
        """Test that at most redirect_limit hops are recorded."""
        spider = Spider(make_options('/redirect/stacked/1', redirect_limit=2))
        sitemap = await spider.run()

        assert sitemap == []
        assert spider.redirects == [site_url('/redirect/stacked/1'), site_url('/redirect/stacked/2')]

    @pytest.mark.asyncio
    async def test_unlimited_redirects(self, make_options, site_url):
        """Test that -1 follows the chain to its end."""
        spider = Spider(make_options('/redirect/stacked/1', redirect_limit=-1))
        sitemap = await spider.run()

        assert sitemap == [site_url('/redirect/stacked/5')]
        assert len(spider.redirects) == 4


class TestSpiderFailures:
    """Tests for retries and the failure set."""

    @pytest.mark.asyncio
    async def test_retries_before_giving_up(self, make_options, site_url):
        """Test that a URL failing 4 times still makes it, one always failing doesn't."""
        spider = Spider(make_options('/failures/', max_tries=5))
        sitemap = await spider.run()

        assert site_url('/failures/fail_4_times') in sitemap
        assert spider.failures == [site_url('/failures/fail')]
        assert site_url('/failures/fail') not in sitemap

    @pytest.mark.asyncio
    async def test_unreachable_seed(self):
        """Test that network errors end up in the failure set."""
        from weaver.config import ScanOptions

        options = ScanOptions.from_config('testing', url='http://127.0.0.1:1/', max_tries=2)
        spider = Spider(options)
        sitemap = await spider.run()

        assert sitemap == []
        assert spider.failures == ['http://127.0.0.1:1/']


class TestSpiderRedundancy:
    """Tests for redundancy caps."""

    @pytest.mark.asyncio
    async def test_redundant_rule_caps_matches(self, make_options):
        """Test that a redundant rule limits how many matching URLs are followed."""
        spider = Spider(make_options('/redundant/', redundant={'item': 2}))
        sitemap = await spider.run()

        assert len(sitemap) == 3

    @pytest.mark.asyncio
    async def test_pushed_paths_count_against_redundant_rules(self, make_options, site_url):
        """Test that pushed paths use up a redundant rule's cap."""
        spider = Spider(make_options('/redundant/', redundant={'item': 2}))
        spider.push(['/redundant/item?id=0', '/redundant/item?id=1'])
        assert spider.counters.counts() == {'item': 2}

        sitemap = await spider.run()

        assert sorted(sitemap) == sorted([
            site_url('/redundant/'),
            site_url('/redundant/item?id=0'),
            site_url('/redundant/item?id=1'),
        ])

    @pytest.mark.asyncio
    async def test_auto_redundant_caps_each_parameter_shape(self, make_options):
        """Test that each query-parameter shape is capped separately."""
        spider = Spider(make_options('/auto/', auto_redundant=5))
        sitemap = await spider.run()

        assert len(sitemap) == 11

    @pytest.mark.asyncio
    async def test_stricter_cap_wins(self, make_options):
        """Test that link_count_limit and auto_redundant apply independently."""
        spider = Spider(make_options('/auto/', auto_redundant=5, link_count_limit=4))
        sitemap = await spider.run()

        assert len(sitemap) == 4


class TestSpiderControl:
    """Tests for pause/resume, push, listeners and reset."""

    @pytest.mark.asyncio
    async def test_pause_before_run_waits_for_resume(self, make_options):
        """Test that a paused spider doesn't fetch until resumed."""
        spider = Spider(make_options('/crawl/'))
        spider.pause()
        assert spider.is_paused
        assert spider.status == SpiderStatus.PAUSED

        task = asyncio.ensure_future(spider.run())
        await asyncio.sleep(0.2)

        assert spider.sitemap == []
        assert not task.done()

        spider.resume()
        sitemap = await task

        assert len(sitemap) == len(CRAWL_PATHS)
        assert not spider.is_paused

    @pytest.mark.asyncio
    async def test_pause_holds_in_flight_responses(self, make_options, site_url):
        """Test that responses completing while paused are only processed after resume."""
        spider = Spider(make_options('/slow/'))
        loop = asyncio.get_running_loop()

        def pause_soon(page):
            if page.url == site_url('/slow/'):
                loop.call_later(0.05, spider.pause)

        spider.on_each_page(pause_soon)
        task = asyncio.ensure_future(spider.run())
        await asyncio.sleep(0.5)

        assert spider.is_paused
        assert spider.sitemap == [site_url('/slow/')]
        assert not task.done()

        spider.resume()
        sitemap = await task

        assert len(sitemap) == 5

    @pytest.mark.asyncio
    async def test_driven_from_another_thread(self, make_options):
        """Test run_sync() in a worker thread with pause/resume from this one."""
        spider = Spider(make_options('/crawl/'))
        spider.pause()

        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(None, spider.run_sync)
        await asyncio.sleep(0.3)

        assert spider.is_paused
        assert spider.sitemap == []

        spider.resume()
        sitemap = await future

        assert len(sitemap) == len(CRAWL_PATHS)
        assert spider.is_done

    @pytest.mark.asyncio
    async def test_push_adds_new_paths_only(self, make_options, site_url):
        """Test that push() de-duplicates and the pushed path gets crawled."""
        spider = Spider(make_options('/crawl/'))

        assert spider.push('/extra') == 1
        assert spider.push(['/extra', '/crawl/']) == 0

        sitemap = await spider.run()
        assert site_url('/extra') in sitemap

    @pytest.mark.asyncio
    async def test_listeners_chain_and_fire(self, make_options):
        """Test that observers return the spider and fire for every page."""
        spider = Spider(make_options('/crawl/'))
        pages, responses, completed = [], [], []

        result = (spider
                  .on_each_page(pages.append)
                  .on_each_response(responses.append)
                  .on_complete(lambda: completed.append(True)))
        assert result is spider

        sitemap = await spider.run()

        assert len(pages) == len(sitemap)
        assert len(responses) == len(sitemap)
        assert all(isinstance(page, Page) for page in pages)
        assert completed == [True]

    @pytest.mark.asyncio
    async def test_callback_can_receive_raw_responses(self, make_options):
        """Test pass_pages_to_callback=False."""
        spider = Spider(make_options('/crawl/'))
        received = []

        await spider.run(received.append, pass_pages_to_callback=False)

        assert received
        assert all(isinstance(r, Response) for r in received)

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_stop_the_crawl(self, make_options):
        """Test that listener exceptions are logged, not raised."""
        spider = Spider(make_options('/crawl/'))

        def broken(page):
            raise RuntimeError('listener bug')

        spider.on_each_page(broken)
        sitemap = await spider.run()

        assert len(sitemap) == len(CRAWL_PATHS)

    @pytest.mark.asyncio
    async def test_reset(self, make_options, site_url):
        """Test that reset() forgets the crawl and re-seeds the frontier."""
        spider = Spider(make_options('/crawl/'))
        assert spider.status == SpiderStatus.IDLE

        await spider.run()
        spider.reset()

        assert spider.sitemap == []
        assert spider.redirects == []
        assert spider.failures == []
        assert spider.paths == [site_url('/crawl/')]
        assert spider.status == SpiderStatus.IDLE
