#!/usr/bin/env python3
"""
Weaver - Web Application Security Scanner

Main entry point for the command line.
"""

import logging
import sys
import click
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def configure_logging(verbose: bool):
    from weaver.config import config

    level = logging.DEBUG if verbose else getattr(logging, config['default'].LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)-8s %(name)s: %(message)s'
    )


@click.group()
@click.version_option(version='0.4.0', prog_name='Weaver')
def cli():
    """Weaver - Web Application Security Scanner"""
    pass


@cli.command()
@click.argument('url')
@click.option('--audit', '-a', 'audit', multiple=True,
              type=click.Choice(['links', 'forms', 'cookies', 'headers']),
              help='Element kinds to audit (repeatable)')
@click.option('--modules', '-m', multiple=True, help='Modules to load, "*" for all')
@click.option('--plugins', '-p', multiple=True, help='Plugins to load')
@click.option('--report', '-r', 'reports', multiple=True, help='Reports to run')
@click.option('--outfile', '-o', help='Output file for reports that support one')
@click.option('--profile', default='default', help='Configuration profile')
@click.option('--no-crawl', is_flag=True, help='Audit the given URL without crawling')
@click.option('--extend-path', multiple=True, help='Extra paths to seed the crawl with')
@click.option('--restrict-path', multiple=True, help='Only audit these paths')
@click.option('--exclude', multiple=True, help='Regex of URLs to skip')
@click.option('--include', multiple=True, help='Regex URLs must match')
@click.option('--redundant', multiple=True, help='PATTERN:COUNT cap on matching URLs')
@click.option('--auto-redundant', type=int, help='Cap per query-parameter shape')
@click.option('--link-count', type=int, help='Maximum number of URLs to follow')
@click.option('--redirect-limit', type=int, help='Maximum redirects per chain (-1 unlimited)')
@click.option('--depth', type=int, help='Maximum crawl depth (-1 unlimited)')
@click.option('--follow-subdomains', is_flag=True, help='Treat subdomains as in scope')
@click.option('--exclude-binaries', is_flag=True, help='Skip non-text resources')
@click.option('--verbose', '-v', is_flag=True, help='Verbose output')
def scan(url, audit, modules, plugins, reports, outfile, profile, no_crawl, extend_path,
         restrict_path, exclude, include, redundant, auto_redundant, link_count,
         redirect_limit, depth, follow_subdomains, exclude_binaries, verbose):
    """Crawl and audit a target URL."""
    configure_logging(verbose)

    from weaver.config import ScanOptions
    from weaver.errors import ConfigurationError
    from weaver.scanner.core.framework import Framework

    overrides = {
        'url': url,
        'audit': set(audit),
        'modules': list(modules) or ['*'],
        'plugins': list(plugins),
        'reports': list(reports) or ['stdout'],
        'outfile': outfile,
        'crawl_enabled': not no_crawl,
        'extend_paths': list(extend_path),
        'restrict_paths': list(restrict_path),
        'exclude': list(exclude),
        'include': list(include),
        'follow_subdomains': follow_subdomains,
        'exclude_binaries': exclude_binaries,
    }
    for name, value in (('auto_redundant', auto_redundant), ('link_count_limit', link_count),
                        ('redirect_limit', redirect_limit), ('depth_limit', depth)):
        if value is not None:
            overrides[name] = value

    try:
        overrides['redundant'] = _parse_redundant(redundant)
        options = ScanOptions.from_config(profile, **overrides)
        framework = Framework(options)
    except ConfigurationError as e:
        click.secho(f"Error: {e}", fg='red', err=True)
        sys.exit(2)

    click.echo(f"""
    Target:  {url}
    Audit:   {', '.join(sorted(options.audit)) or 'none'}
    Modules: {', '.join(framework.modules.loaded) or 'none'}
    """)

    auditstore = framework.run_sync()

    stats = framework.stats()
    click.echo("-" * 50)
    click.echo(f"Requests: {stats['requests']}  Time: {stats['time']}  "
               f"Sitemap: {stats['sitemap_size']}  Audited: {stats['auditmap_size']}")
    click.secho(f"Issues found: {len(auditstore.issues)}",
                fg='red' if auditstore.issues else 'green')


@cli.command()
@click.argument('kind', type=click.Choice(['modules', 'plugins', 'reports']))
@click.argument('pattern', required=False)
def ls(kind, pattern):
    """List available modules, plugins or reports, optionally filtered by PATTERN."""
    from weaver.config import ScanOptions
    from weaver.scanner.core.framework import Framework

    options = ScanOptions(lsmod=pattern, lsplug=pattern, lsrep=pattern)
    framework = Framework(options)

    listing = {
        'modules': framework.list_modules,
        'plugins': framework.list_plugins,
        'reports': framework.list_reports,
    }[kind]()

    for info in listing:
        click.secho(info['name'], bold=True)
        click.echo(f"    {info['description']}")
        if info.get('elements'):
            click.echo(f"    Elements: {', '.join(info['elements'])}")


@cli.command()
@click.option('--port', default=5001, help='Port to bind to')
def demo(port):
    """Start the local test site for trying out scans."""
    from aiohttp import web
    from tests.target_app import create_target_app

    click.echo(f"Test site available at: http://127.0.0.1:{port}/")
    web.run_app(create_target_app(), host='127.0.0.1', port=port)


def _parse_redundant(rules):
    from weaver.errors import ConfigurationError

    redundant = {}
    for rule in rules:
        pattern, _, count = rule.rpartition(':')
        if not pattern or not count.isdigit():
            raise ConfigurationError(f"Redundancy rule must look like PATTERN:COUNT, got {rule!r}")
        redundant[pattern] = int(count)
    return redundant


if __name__ == '__main__':
    cli()
