import json
import os

import pytest
import requests
import responses

import claude_docs_mirror.pipeline as pipeline
from claude_docs_mirror import __version__
from claude_docs_mirror.errors import EmptyInventoryError, ManifestWriteError
from claude_docs_mirror.hashing import content_hash
from claude_docs_mirror.manifest import MANIFEST_FILE, load_manifest
from tests.helpers import (
    CHANGELOG_RAW_URL,
    DOCS_BASE,
    FIXED_NOW,
    SITEMAP_URLS,
    VALID_MARKDOWN,
    fixed_now,
    no_jitter,
    sitemap_xml,
)

OLD_TIMESTAMP = "2024-01-01T00:00:00+00:00"
PAGE_A = VALID_MARKDOWN
PAGE_B = VALID_MARKDOWN.replace("# Hooks", "# Settings")
CHANGELOG_BODY = "## 1.0.0\n\n- Initial release\n"


def write_file(docs_dir, name, content):
    with open(os.path.join(docs_dir, name), "w", encoding="utf-8") as f:
        f.write(content)


def read_file(docs_dir, name):
    with open(os.path.join(docs_dir, name), encoding="utf-8") as f:
        return f.read()


def write_old_manifest(docs_dir, files):
    write_file(docs_dir, MANIFEST_FILE, json.dumps({"files": files}))


def serve_docs(http, pages, base=DOCS_BASE):
    """Serve a sitemap listing `pages` from the first candidate, plus their .md bodies."""
    http.add(responses.GET, SITEMAP_URLS[0], body=sitemap_xml(*(f"{base}{p}" for p in pages)))
    for path, body in pages.items():
        http.add(responses.GET, f"{base}{path}.md", body=body)


@pytest.fixture
def run(docs_dir, config, sleep):
    def _run(**kwargs):
        return pipeline.run_mirror(
            docs_dir,
            config,
            session=requests.Session(),
            sleep=sleep,
            now=fixed_now,
            jitter=no_jitter,
            **kwargs,
        )
    return _run


@pytest.fixture
def writes(monkeypatch):
    """Record every document written by the pipeline."""
    written = []
    real_save = pipeline.save_markdown_file

    def spy(docs_dir, filename, content):
        written.append(filename)
        return real_save(docs_dir, filename, content)

    monkeypatch.setattr(pipeline, "save_markdown_file", spy)
    return written


def test_reconciles_against_previous_manifest(run, docs_dir, http, writes):
    write_file(docs_dir, "a.md", PAGE_A)
    write_file(docs_dir, "stale.md", "old page")
    write_file(docs_dir, "unrelated.txt", "not ours")
    write_old_manifest(docs_dir, {
        "a.md": {"original_url": f"{DOCS_BASE}/docs/en/a", "hash": content_hash(PAGE_A),
                 "last_updated": OLD_TIMESTAMP},
        "stale.md": {"original_url": f"{DOCS_BASE}/docs/en/stale", "hash": "deadbeef",
                     "last_updated": OLD_TIMESTAMP},
    })
    serve_docs(http, {"/docs/en/a": PAGE_A, "/docs/en/b": PAGE_B})
    http.add(responses.GET, CHANGELOG_RAW_URL, body=CHANGELOG_BODY)

    result = run()

    assert result.ok
    assert result.successful == 3
    assert result.failed == 0
    assert result.removed == ["stale.md"]
    assert result.sitemap_url == SITEMAP_URLS[0]
    assert result.base_url == DOCS_BASE

    # a.md unchanged: not rewritten, timestamp preserved; b.md new.
    assert writes == ["b.md", "changelog.md"]
    assert read_file(docs_dir, "b.md") == PAGE_B
    assert not os.path.exists(os.path.join(docs_dir, "stale.md"))
    assert os.path.exists(os.path.join(docs_dir, "unrelated.txt"))

    manifest = load_manifest(docs_dir)
    assert set(manifest.files) == {"a.md", "b.md", "changelog.md"}
    assert manifest.files["a.md"].last_updated == OLD_TIMESTAMP
    assert manifest.files["a.md"].hash == content_hash(PAGE_A)
    assert manifest.files["b.md"].last_updated == FIXED_NOW.isoformat()
    assert manifest.files["b.md"].hash == content_hash(PAGE_B)
    assert manifest.files["b.md"].original_md_url == f"{DOCS_BASE}/docs/en/b.md"
    assert manifest.files["changelog.md"].source == "claude-code-repository"
    assert manifest.files["changelog.md"].hash == content_hash(read_file(docs_dir, "changelog.md"))


def test_changed_content_advances_timestamp(run, docs_dir, http):
    write_file(docs_dir, "a.md", PAGE_A)
    write_old_manifest(docs_dir, {
        "a.md": {"original_url": "u", "hash": content_hash(PAGE_A), "last_updated": OLD_TIMESTAMP},
    })
    serve_docs(http, {"/docs/en/a": PAGE_B})
    http.add(responses.GET, CHANGELOG_RAW_URL, body=CHANGELOG_BODY)

    run()

    entry = load_manifest(docs_dir).files["a.md"]
    assert entry.hash == content_hash(PAGE_B)
    assert entry.last_updated == FIXED_NOW.isoformat()
    assert read_file(docs_dir, "a.md") == PAGE_B


def test_restores_unchanged_file_missing_from_disk(run, docs_dir, http, writes):
    write_old_manifest(docs_dir, {
        "a.md": {"original_url": "u", "hash": content_hash(PAGE_A), "last_updated": OLD_TIMESTAMP},
    })
    serve_docs(http, {"/docs/en/a": PAGE_A})
    http.add(responses.GET, CHANGELOG_RAW_URL, body=CHANGELOG_BODY)

    run()

    assert "a.md" in writes
    assert read_file(docs_dir, "a.md") == PAGE_A
    assert load_manifest(docs_dir).files["a.md"].last_updated == OLD_TIMESTAMP


def test_writes_run_metadata(run, docs_dir, http):
    serve_docs(http, {"/docs/en/a": PAGE_A, "/docs/en/b": PAGE_B})
    http.add(responses.GET, CHANGELOG_RAW_URL, body=CHANGELOG_BODY)

    run()

    with open(os.path.join(docs_dir, MANIFEST_FILE), encoding="utf-8") as f:
        saved = json.load(f)
    meta = saved["fetch_metadata"]
    assert meta["total_pages_discovered"] == 2
    assert meta["pages_fetched_successfully"] == 3
    assert meta["pages_failed"] == 0
    assert meta["failed_pages"] == []
    assert meta["sitemap_url"] == SITEMAP_URLS[0]
    assert meta["base_url"] == DOCS_BASE
    assert meta["total_files"] == 3
    assert meta["fetch_tool_version"] == __version__
    assert meta["last_fetch_completed"] == FIXED_NOW.isoformat()
    assert saved["github_repository"] == "test-owner/test-repo"


def test_page_failure_is_contained(run, docs_dir, http, sleep):
    http.add(responses.GET, SITEMAP_URLS[0], body=sitemap_xml(
        f"{DOCS_BASE}/docs/en/a", f"{DOCS_BASE}/docs/en/broken", f"{DOCS_BASE}/docs/en/c",
    ))
    http.add(responses.GET, f"{DOCS_BASE}/docs/en/a.md", body=PAGE_A)
    http.add(responses.GET, f"{DOCS_BASE}/docs/en/broken.md", status=500)
    http.add(responses.GET, f"{DOCS_BASE}/docs/en/c.md", body=PAGE_B)
    http.add(responses.GET, CHANGELOG_RAW_URL, body=CHANGELOG_BODY)

    result = run()

    assert not result.ok
    assert result.successful == 3
    assert result.failed == 1
    assert result.failed_pages == ["broken.md"]
    assert set(result.manifest.files) == {"a.md", "c.md", "changelog.md"}
    saved = load_manifest(docs_dir)
    assert saved.fetch_metadata.failed_pages == ["broken.md"]
    # Two inter-page delays around the retry backoff of the broken page.
    assert sleep.calls == [0.5, 2.0, 4.0, 0.5]


def test_failed_page_previously_tracked_is_removed(run, docs_dir, http):
    write_file(docs_dir, "broken.md", PAGE_A)
    write_old_manifest(docs_dir, {
        "broken.md": {"original_url": "u", "hash": content_hash(PAGE_A), "last_updated": OLD_TIMESTAMP},
    })
    http.add(responses.GET, SITEMAP_URLS[0], body=sitemap_xml(f"{DOCS_BASE}/docs/en/broken"))
    http.add(responses.GET, f"{DOCS_BASE}/docs/en/broken.md", status=404)
    http.add(responses.GET, CHANGELOG_RAW_URL, body=CHANGELOG_BODY)

    result = run()

    assert result.removed == ["broken.md"]
    assert "broken.md" not in load_manifest(docs_dir).files


def test_changelog_failure_is_counted_not_fatal(run, docs_dir, http):
    serve_docs(http, {"/docs/en/a": PAGE_A})
    http.add(responses.GET, CHANGELOG_RAW_URL, status=502)

    result = run()

    assert not result.ok
    assert result.successful == 1
    assert result.failed_pages == ["changelog.md"]
    assert set(load_manifest(docs_dir).files) == {"a.md"}


def test_no_delay_after_last_page(run, http, sleep):
    serve_docs(http, {"/docs/en/a": PAGE_A, "/docs/en/b": PAGE_B, "/docs/en/c": PAGE_A})
    http.add(responses.GET, CHANGELOG_RAW_URL, body=CHANGELOG_BODY)

    run()

    assert sleep.calls == [0.5, 0.5]


def test_fetches_pages_in_sorted_order_then_changelog(run, http):
    serve_docs(http, {"/docs/en/zeta": PAGE_A, "/docs/en/alpha": PAGE_B})
    http.add(responses.GET, CHANGELOG_RAW_URL, body=CHANGELOG_BODY)

    run()

    fetched = [c.request.url for c in http.calls if c.request.url.endswith(".md")]
    assert fetched == [
        f"{DOCS_BASE}/docs/en/alpha.md",
        f"{DOCS_BASE}/docs/en/zeta.md",
        CHANGELOG_RAW_URL,
    ]


def test_discovery_failure_uses_fallback(run, config, http):
    for url in SITEMAP_URLS:
        http.add(responses.GET, url, status=404)
    for path in config.fallback_pages:
        http.add(responses.GET, f"{config.fallback_base_url}{path}.md", body=PAGE_A)
    http.add(responses.GET, CHANGELOG_RAW_URL, body=CHANGELOG_BODY)

    result = run()

    assert result.ok
    assert result.sitemap_url is None
    assert result.base_url == config.fallback_base_url
    assert set(result.manifest.files) == {"overview.md", "setup.md", "changelog.md"}
    assert result.manifest.fetch_metadata.sitemap_url is None


def test_empty_inventory_aborts(run, docs_dir, http):
    http.add(responses.GET, SITEMAP_URLS[0], body=sitemap_xml("https://docs.test/blog/post"))

    with pytest.raises(EmptyInventoryError):
        run()
    assert not os.path.exists(os.path.join(docs_dir, MANIFEST_FILE))


def test_manifest_write_failure_propagates(run, docs_dir, http):
    serve_docs(http, {"/docs/en/a": PAGE_A})
    http.add(responses.GET, CHANGELOG_RAW_URL, body=CHANGELOG_BODY)
    os.mkdir(os.path.join(docs_dir, MANIFEST_FILE + ".tmp"))

    with pytest.raises(ManifestWriteError):
        run()


def test_corrupt_manifest_is_treated_as_first_run(run, docs_dir, http):
    write_file(docs_dir, MANIFEST_FILE, "{ not json")
    write_file(docs_dir, "orphan.md", "was never tracked")
    serve_docs(http, {"/docs/en/a": PAGE_A})
    http.add(responses.GET, CHANGELOG_RAW_URL, body=CHANGELOG_BODY)

    result = run()

    assert result.ok
    assert result.removed == []
    assert os.path.exists(os.path.join(docs_dir, "orphan.md"))
    assert set(load_manifest(docs_dir).files) == {"a.md", "changelog.md"}


def test_malformed_manifest_entry_does_not_orphan_tracked_files(run, docs_dir, http):
    write_file(docs_dir, "gone.md", "page that disappeared")
    write_file(docs_dir, "a.md", PAGE_A)
    write_old_manifest(docs_dir, {
        "gone.md": {"original_url": "u", "hash": "abc", "last_updated": OLD_TIMESTAMP},
        "a.md": {"original_url": "u", "hash": 123},
    })
    serve_docs(http, {"/docs/en/a": PAGE_A})
    http.add(responses.GET, CHANGELOG_RAW_URL, body=CHANGELOG_BODY)

    result = run()

    assert result.removed == ["gone.md"]
    assert not os.path.exists(os.path.join(docs_dir, "gone.md"))
    assert load_manifest(docs_dir).files["a.md"].hash == content_hash(PAGE_A)


def test_unexpected_error_on_one_page_is_contained(run, docs_dir, http, monkeypatch):
    real_store = pipeline.store_if_changed

    def store(docs_dir, filename, content, old_manifest, now):
        if filename == "broken.md":
            raise RuntimeError("boom")
        return real_store(docs_dir, filename, content, old_manifest, now)

    monkeypatch.setattr(pipeline, "store_if_changed", store)
    serve_docs(http, {"/docs/en/a": PAGE_A, "/docs/en/broken": PAGE_B})
    http.add(responses.GET, CHANGELOG_RAW_URL, body=CHANGELOG_BODY)

    result = run()

    assert result.failed_pages == ["broken.md"]
    assert result.successful == 2
    assert set(load_manifest(docs_dir).files) == {"a.md", "changelog.md"}
