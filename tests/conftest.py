import pytest
import responses

from claude_docs_mirror.config import MirrorConfig
from tests.helpers import CHANGELOG_RAW_URL, CHANGELOG_URL, DOCS_BASE, SITEMAP_URLS, RecordingSleep


@pytest.fixture
def config() -> MirrorConfig:
    return MirrorConfig(
        sitemap_urls=SITEMAP_URLS,
        fallback_base_url=DOCS_BASE,
        fallback_pages=["/docs/en/overview", "/docs/en/setup"],
        changelog_raw_url=CHANGELOG_RAW_URL,
        changelog_url=CHANGELOG_URL,
        github_repository="test-owner/test-repo",
        github_ref="main",
    )


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def http():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


@pytest.fixture
def docs_dir(tmp_path) -> str:
    d = tmp_path / "docs"
    d.mkdir()
    return str(d)
