"""Tests for the URL/Scope filter."""

from weaver.config import ScanOptions
from weaver.errors import ScopeRejection
from weaver.scanner.core.scope import RedundancyCounters, ScopeContext, ScopeFilter

SEED = 'http://example.com/'


def make_filter(**overrides):
    return ScopeFilter(ScanOptions(url=SEED, **overrides))


class TestScopeFilter:
    """Tests for ScopeFilter.check()."""

    def test_accepts_same_domain(self):
        scope = make_filter()
        assert scope.in_scope('http://example.com/page', ScopeContext(seed_url=SEED))

    def test_rejects_other_schemes(self):
        scope = make_filter()
        assert scope.check('ftp://example.com/file', ScopeContext(seed_url=SEED)) == ScopeRejection.SCHEME

    def test_rejects_known_urls(self):
        """Test that sitemap, frontier and failure entries are never re-queued."""
        scope = make_filter()
        url = 'http://example.com/page'

        for context in (ScopeContext(seed_url=SEED, sitemap={url: 200}),
                        ScopeContext(seed_url=SEED, frontier={url: None}),
                        ScopeContext(seed_url=SEED, failures={url})):
            assert scope.check(url, context) == ScopeRejection.KNOWN

    def test_rejects_other_domains(self):
        scope = make_filter()
        context = ScopeContext(seed_url=SEED)

        assert scope.check('http://other.com/', context) == ScopeRejection.DOMAIN
        assert scope.check('http://sub.example.com/', context) == ScopeRejection.DOMAIN

    def test_follow_subdomains(self):
        scope = make_filter(follow_subdomains=True)
        context = ScopeContext(seed_url=SEED)

        assert scope.in_scope('http://sub.example.com/', context)
        assert not scope.in_scope('http://notexample.com/', context)

    def test_scheme_does_not_change_the_domain(self):
        scope = make_filter()
        assert scope.in_scope('https://example.com/secure', ScopeContext(seed_url=SEED))

    def test_exclude_and_include(self):
        scope = make_filter(exclude=['logout'], include=['/app/'])
        context = ScopeContext(seed_url=SEED)

        assert scope.check('http://example.com/app/logout', context) == ScopeRejection.EXCLUDED
        assert scope.check('http://example.com/other', context) == ScopeRejection.NOT_INCLUDED
        assert scope.in_scope('http://example.com/app/home', context)

    def test_exclude_binaries(self):
        scope = make_filter(exclude_binaries=True)
        context = ScopeContext(seed_url=SEED)

        assert scope.check('http://example.com/logo.png', context) == ScopeRejection.BINARY
        assert scope.in_scope('http://example.com/index.html', context)

    def test_link_budget(self):
        scope = make_filter()
        url = 'http://example.com/page'

        assert scope.check(url, ScopeContext(seed_url=SEED, links_remaining=0)) == ScopeRejection.LINK_LIMIT
        assert scope.in_scope(url, ScopeContext(seed_url=SEED, links_remaining=1))

    def test_restrict_paths_bypass_other_rules(self):
        """Test that only restricted URLs are in scope, even excluded ones."""
        scope = make_filter(restrict_paths=['/only', 'http://other.com/too'], exclude=['only'])
        context = ScopeContext(seed_url=SEED)

        assert scope.restricted == {'http://example.com/only', 'http://other.com/too'}
        assert scope.in_scope('http://example.com/only', context)
        assert scope.in_scope('http://other.com/too', context)
        assert scope.check('http://example.com/page', context) == ScopeRejection.RESTRICTED

    def test_no_restriction_by_default(self):
        assert make_filter().restricted is None


class TestRedundancyCounters:
    """Tests for redundancy caps."""

    def test_redundant_rule_cap(self):
        scope = make_filter()
        counters = RedundancyCounters({'item': 2})
        context = ScopeContext(seed_url=SEED, counters=counters)

        for i in range(2):
            url = f'http://example.com/item?id={i}'
            assert scope.in_scope(url, context)
            counters.record(url)

        assert scope.check('http://example.com/item?id=3', context) == ScopeRejection.REDUNDANT
        assert scope.in_scope('http://example.com/other', context)
        assert counters.counts() == {'item': 2}

    def test_zero_cap_blocks_everything_matching(self):
        counters = RedundancyCounters({'calendar': 0})
        assert counters.exceeded_rule('http://example.com/calendar') == 'calendar'

    def test_auto_redundant_per_shape(self):
        counters = RedundancyCounters(auto_redundant=1)
        counters.record('http://example.com/p?a=1&b=1')

        assert counters.exceeded_shape('http://example.com/p?b=2&a=2')
        assert not counters.exceeded_shape('http://example.com/p?c=1')
        assert not counters.exceeded_shape('http://example.com/p')

    def test_reset(self):
        counters = RedundancyCounters({'item': 1}, auto_redundant=1)
        counters.record('http://example.com/item?id=1')
        counters.reset()

        assert counters.counts() == {'item': 0}
        assert not counters.exceeded_shape('http://example.com/item?id=2')
