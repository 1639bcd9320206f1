"""Sitemap discovery: where the docs live and which pages exist.

Sitemaps are scanned with a tolerant regex rather than an XML parser; the
only thing we need from them is the list of <loc> URLs.
"""

import logging
import re
from urllib.parse import urlparse

import requests

from claude_docs_mirror.config import MirrorConfig
from claude_docs_mirror.errors import DiscoveryError

logger = logging.getLogger(__name__)

LOC_RE = re.compile(r"<loc>(https?://[^<]+)</loc>")


def extract_locations(xml: str) -> list[str]:
    return [m.strip() for m in LOC_RE.findall(xml)]


def _get_sitemap(session: requests.Session, url: str, config: MirrorConfig) -> requests.Response:
    return session.get(url, headers=config.headers(), timeout=config.request_timeout)


def discover_sitemap_and_base_url(
    session: requests.Session,
    config: MirrorConfig,
) -> tuple[str, str]:
    """Find the first working sitemap and derive the docs base URL from it.

    Returns:
        (sitemap_url, base_url) where base_url is the scheme and host of the
        sitemap's first <loc>.

    Raises:
        DiscoveryError if no candidate responds with at least one <loc>.
    """
    for sitemap_url in config.sitemap_urls:
        logger.info(f"Trying sitemap: {sitemap_url}")
        try:
            resp = _get_sitemap(session, sitemap_url, config)
        except requests.exceptions.RequestException as e:
            logger.warning(f"Failed to fetch {sitemap_url}: {e}")
            continue

        if not resp.ok:
            logger.warning(f"Sitemap {sitemap_url} returned HTTP {resp.status_code}")
            continue

        locations = extract_locations(resp.text)
        if not locations:
            logger.warning(f"Sitemap {sitemap_url} has no <loc> entries")
            continue

        first = urlparse(locations[0])
        base_url = f"{first.scheme}://{first.netloc}"
        logger.info(f"Found sitemap at {sitemap_url}, base URL: {base_url}")
        return sitemap_url, base_url

    raise DiscoveryError("Could not find a valid sitemap")


def filter_documentation_pages(urls: list[str], config: MirrorConfig) -> list[str]:
    """Reduce sitemap URLs to sorted, unique doc page paths.

    Keeps English Claude Code pages, strips `.html` or a trailing slash, and
    drops excluded sections (API reference, examples, ...).
    """
    pages = set()
    for url in urls:
        if not any(pattern in url for pattern in config.namespace_patterns):
            continue

        path = urlparse(url).path
        if path.endswith(".html"):
            path = path[: -len(".html")]
        elif path.endswith("/"):
            path = path[:-1]

        if any(skip in path for skip in config.excluded_sections):
            continue
        pages.add(path)

    return sorted(pages)


def discover_claude_code_pages(
    session: requests.Session,
    sitemap_url: str,
    config: MirrorConfig,
) -> list[str]:
    """List documentation page paths from the sitemap.

    Never raises: if the sitemap cannot be fetched, the configured fallback
    pages are returned so the run still refreshes the essentials.
    """
    logger.info("Discovering documentation pages from sitemap...")
    try:
        resp = _get_sitemap(session, sitemap_url, config)
        resp.raise_for_status()
        urls = extract_locations(resp.text)
        logger.info(f"Found {len(urls)} total URLs in sitemap")
        pages = filter_documentation_pages(urls, config)
    except (requests.exceptions.RequestException, ValueError) as e:
        logger.error(f"Failed to discover pages from sitemap: {e}")
        logger.warning("Falling back to essential pages...")
        return list(config.fallback_pages)

    logger.info(f"Discovered {len(pages)} Claude Code documentation pages")
    return pages
