"""Reconciliation driver: discover, fetch, compare, write, prune, persist.

One call to run_mirror is one scheduled run. The previous manifest is only
read; a new manifest is built from scratch out of what this run actually
fetched, which is what makes cleanup safe: anything the old manifest tracked
that was not re-fetched is deleted.
"""

import logging
import os
import random
import time
from collections.abc import Callable
from datetime import datetime

import requests
from pydantic import BaseModel

from claude_docs_mirror import __version__
from claude_docs_mirror.config import MirrorConfig
from claude_docs_mirror.errors import DiscoveryError, EmptyInventoryError
from claude_docs_mirror.fetcher import CHANGELOG_FILENAME, CHANGELOG_SOURCE, DocsFetcher
from claude_docs_mirror.filenames import url_to_safe_filename
from claude_docs_mirror.hashing import content_has_changed
from claude_docs_mirror.manifest import (
    FetchMetadata,
    Manifest,
    ManifestEntry,
    cleanup_old_files,
    load_manifest,
    save_manifest,
    save_markdown_file,
    utc_now,
)
from claude_docs_mirror.sitemap import discover_claude_code_pages, discover_sitemap_and_base_url

logger = logging.getLogger(__name__)


class MirrorResult(BaseModel):
    """Outcome of one run. `ok` is False if any page or the changelog failed."""

    ok: bool
    successful: int
    failed: int
    failed_pages: list[str]
    removed: list[str]
    total_pages_discovered: int
    sitemap_url: str | None
    base_url: str
    duration_seconds: float
    manifest: Manifest

    @property
    def total_expected(self) -> int:
        return self.total_pages_discovered + 1  # +1 for the changelog


def store_if_changed(
    docs_dir: str,
    filename: str,
    content: str,
    old_manifest: Manifest,
    now: Callable[[], datetime] = utc_now,
) -> tuple[str, str]:
    """Write content unless the old manifest already has the same hash.

    An unchanged file that has gone missing from disk is written back, but
    keeps its old timestamp since its content did not change.

    Returns:
        (hash, last_updated) for the new manifest entry.
    """
    old_entry = old_manifest.files.get(filename)
    old_hash = old_entry.hash if old_entry else ""

    if content_has_changed(content, old_hash):
        content_hash = save_markdown_file(docs_dir, filename, content)
        logger.info(f"Updated: {filename}")
        return content_hash, now().isoformat()

    if not os.path.isfile(os.path.join(docs_dir, filename)):
        save_markdown_file(docs_dir, filename, content)
        logger.info(f"Restored missing file: {filename}")
    else:
        logger.info(f"Unchanged: {filename}")
    return old_hash, old_entry.last_updated or now().isoformat()


def discover(session: requests.Session, config: MirrorConfig) -> tuple[str | None, str, list[str]]:
    """Sitemap discovery with the static fallback.

    Returns:
        (sitemap_url or None, base_url, page paths)
    """
    try:
        sitemap_url, base_url = discover_sitemap_and_base_url(session, config)
    except DiscoveryError as e:
        logger.error(f"Failed to discover sitemap: {e}")
        logger.info("Using fallback configuration...")
        return None, config.fallback_base_url, list(config.fallback_pages)

    return sitemap_url, base_url, discover_claude_code_pages(session, sitemap_url, config)


def run_mirror(
    docs_dir: str,
    config: MirrorConfig | None = None,
    *,
    session: requests.Session | None = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
    now: Callable[[], datetime] = utc_now,
    jitter: Callable[[float, float], float] = random.uniform,
) -> MirrorResult:
    """Mirror the documentation into docs_dir and rewrite its manifest.

    Per-resource failures are logged and counted; the run carries on and the
    result reports them. Only an empty page inventory or a manifest that
    cannot be written stops the run.

    Raises:
        EmptyInventoryError if discovery produced no pages.
        ManifestWriteError if the new manifest cannot be saved.
    """
    start = clock()
    config = config if config is not None else MirrorConfig.from_env()
    session = session if session is not None else requests.Session()
    fetcher = DocsFetcher(config, session=session, sleep=sleep, jitter=jitter)

    old_manifest = load_manifest(docs_dir)
    new_manifest = Manifest()
    successful = 0
    failed_pages: list[str] = []
    fetched_files: set[str] = set()

    sitemap_url, base_url, pages = discover(session, config)
    if not pages:
        raise EmptyInventoryError("No documentation pages discovered!")

    # ----- pages -----
    for i, page_path in enumerate(pages):
        logger.info(f"Processing {i + 1}/{len(pages)}: {page_path}")
        try:
            filename, content = fetcher.fetch_markdown_content(page_path, base_url)
            content_hash, last_updated = store_if_changed(
                docs_dir, filename, content, old_manifest, now
            )
            new_manifest.files[filename] = ManifestEntry(
                original_url=f"{base_url}{page_path}",
                original_md_url=f"{base_url}{page_path}.md",
                hash=content_hash,
                last_updated=last_updated,
            )
            fetched_files.add(filename)
            successful += 1
        except Exception as e:
            logger.error(f"Failed to process {page_path}: {e}")
            failed_pages.append(url_to_safe_filename(page_path))

        if i < len(pages) - 1:
            sleep(config.rate_limit_delay)

    # ----- changelog -----
    logger.info("Fetching Claude Code changelog...")
    try:
        filename, content = fetcher.fetch_changelog()
        content_hash, last_updated = store_if_changed(
            docs_dir, filename, content, old_manifest, now
        )
        new_manifest.files[filename] = ManifestEntry(
            original_url=config.changelog_url,
            original_raw_url=config.changelog_raw_url,
            hash=content_hash,
            last_updated=last_updated,
            source=CHANGELOG_SOURCE,
        )
        fetched_files.add(filename)
        successful += 1
    except Exception as e:
        logger.error(f"Failed to fetch changelog: {e}")
        failed_pages.append(CHANGELOG_FILENAME)

    # ----- cleanup + persist -----
    removed = cleanup_old_files(docs_dir, fetched_files, old_manifest)

    duration = round(clock() - start, 3)
    new_manifest.fetch_metadata = FetchMetadata(
        last_fetch_completed=now().isoformat(),
        fetch_duration_seconds=duration,
        total_pages_discovered=len(pages),
        pages_fetched_successfully=successful,
        pages_failed=len(failed_pages),
        failed_pages=failed_pages,
        sitemap_url=sitemap_url,
        base_url=base_url,
        total_files=len(fetched_files),
        fetch_tool_version=__version__,
    )
    save_manifest(docs_dir, new_manifest, config, now)

    logger.info(f"Fetch completed in {duration:.2f}s")
    return MirrorResult(
        ok=not failed_pages,
        successful=successful,
        failed=len(failed_pages),
        failed_pages=failed_pages,
        removed=removed,
        total_pages_discovered=len(pages),
        sitemap_url=sitemap_url,
        base_url=base_url,
        duration_seconds=duration,
        manifest=new_manifest,
    )
