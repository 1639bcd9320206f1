"""Run configuration for the documentation mirror.

Everything the fetcher, discoverer and pipeline need to know about the
outside world lives on MirrorConfig, so tests can build one with fake
endpoints and zero delays instead of patching module globals.
"""

import logging
import os
import re
from collections.abc import Mapping

from pydantic import BaseModel, field_validator

from claude_docs_mirror import __version__

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

# Tried in order; the first one that returns at least one <loc> wins.
SITEMAP_URLS = [
    "https://code.claude.com/docs/sitemap.xml",
    "https://docs.anthropic.com/sitemap.xml",
    "https://docs.anthropic.com/sitemap_index.xml",
    "https://anthropic.com/sitemap.xml",
]

# English Claude Code pages only (new layout first, old layout kept for
# older sitemaps).
NAMESPACE_PATTERNS = ["/docs/en/", "/en/docs/claude-code/"]

EXCLUDED_SECTIONS = ["/tool-use/", "/examples/", "/legacy/", "/api/", "/reference/"]

FALLBACK_BASE_URL = "https://docs.anthropic.com"

# Used when the sitemap is unreachable. Keep in sync with what discovery
# normally returns.
FALLBACK_PAGES = [
    "/en/docs/claude-code/overview",
    "/en/docs/claude-code/setup",
    "/en/docs/claude-code/quickstart",
    "/en/docs/claude-code/memory",
    "/en/docs/claude-code/common-workflows",
    "/en/docs/claude-code/ide-integrations",
    "/en/docs/claude-code/mcp",
    "/en/docs/claude-code/github-actions",
    "/en/docs/claude-code/sdk",
    "/en/docs/claude-code/troubleshooting",
    "/en/docs/claude-code/security",
    "/en/docs/claude-code/settings",
    "/en/docs/claude-code/hooks",
    "/en/docs/claude-code/costs",
    "/en/docs/claude-code/monitoring-usage",
]

CHANGELOG_URL = "https://github.com/anthropics/claude-code/blob/main/CHANGELOG.md"
CHANGELOG_RAW_URL = "https://raw.githubusercontent.com/anthropics/claude-code/main/CHANGELOG.md"

DEFAULT_REPOSITORY = "greenstevester/claude-code-docs"
DEFAULT_REF = "main"

REQUEST_TIMEOUT = (10, 30)  # (connect_timeout, read_timeout) in seconds

REPOSITORY_RE = re.compile(r"^[\w.-]+/[\w.-]+$")
REF_RE = re.compile(r"^[\w.-]+$")


# ---------------------------------------------------------------------------
# Config model
# ---------------------------------------------------------------------------


class MirrorConfig(BaseModel):
    """Endpoints, retry policy and provenance for one mirror run.

    Repository and ref come from the CI environment and are validated
    leniently: a malformed value is logged and replaced by the default
    rather than failing the run.
    """

    sitemap_urls: list[str] = SITEMAP_URLS
    namespace_patterns: list[str] = NAMESPACE_PATTERNS
    excluded_sections: list[str] = EXCLUDED_SECTIONS
    fallback_base_url: str = FALLBACK_BASE_URL
    fallback_pages: list[str] = FALLBACK_PAGES

    changelog_url: str = CHANGELOG_URL
    changelog_raw_url: str = CHANGELOG_RAW_URL
    changelog_min_length: int = 100

    user_agent: str = f"Claude-Code-Docs-Fetcher/{__version__}"
    request_timeout: tuple[float, float] = REQUEST_TIMEOUT

    max_retries: int = 3
    retry_base_delay: float = 2.0    # seconds, doubled per attempt
    retry_max_delay: float = 30.0    # seconds, cap before jitter
    rate_limit_delay: float = 0.5    # seconds between consecutive pages
    rate_limit_default_wait: float = 60.0  # used when Retry-After is unusable

    github_repository: str = DEFAULT_REPOSITORY
    github_ref: str = DEFAULT_REF

    @field_validator("github_repository", mode="before")
    @classmethod
    def validate_repository(cls, v) -> str:
        if not v:
            return DEFAULT_REPOSITORY
        if not isinstance(v, str) or not REPOSITORY_RE.match(v):
            logger.warning(f"Invalid repository format: {v}, using default")
            return DEFAULT_REPOSITORY
        return v

    @field_validator("github_ref", mode="before")
    @classmethod
    def validate_ref(cls, v) -> str:
        if not v:
            return DEFAULT_REF
        if not isinstance(v, str) or not REF_RE.match(v):
            logger.warning(f"Invalid ref format: {v}, using default")
            return DEFAULT_REF
        return v

    @field_validator("max_retries")
    @classmethod
    def validate_max_retries(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_retries must be at least 1")
        return v

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides) -> "MirrorConfig":
        """Build a config from GITHUB_REPOSITORY / GITHUB_REF_NAME."""
        env = os.environ if environ is None else environ
        values = {
            "github_repository": env.get("GITHUB_REPOSITORY", ""),
            "github_ref": env.get("GITHUB_REF_NAME", ""),
        }
        values.update(overrides)
        return cls(**values)

    def headers(self) -> dict[str, str]:
        """Request headers: identify ourselves and defeat intermediate caches."""
        return {
            "User-Agent": self.user_agent,
            "Cache-Control": "no-cache, no-store, must-revalidate",
            "Pragma": "no-cache",
            "Expires": "0",
        }

    @property
    def raw_base_url(self) -> str:
        return (
            f"https://raw.githubusercontent.com/"
            f"{self.github_repository}/{self.github_ref}/docs/"
        )
