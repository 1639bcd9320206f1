"""HTTP fetching with retries, backoff and 429 handling.

One DocsFetcher serves a whole run. The session, the sleep function and the
jitter source are injected so tests can run the full retry policy without
touching the network or the wall clock.
"""

import logging
import random
import time
from collections.abc import Callable

import requests
from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
)
from tenacity.wait import wait_base

from claude_docs_mirror.config import MirrorConfig
from claude_docs_mirror.errors import FetchError, ValidationError
from claude_docs_mirror.filenames import url_to_safe_filename
from claude_docs_mirror.validation import validate_markdown_content

logger = logging.getLogger(__name__)

CHANGELOG_FILENAME = "changelog.md"
CHANGELOG_SOURCE = "claude-code-repository"

CHANGELOG_HEADER = """# Claude Code Changelog

> **Source**: {changelog_url}
>
> This is the official Claude Code release changelog, automatically fetched from the Claude Code repository. For documentation, see other topics via `/docs`.

---

"""


class RateLimitedError(Exception):
    """The server answered 429. Carries how long to wait before retrying."""

    def __init__(self, url: str, retry_after: float):
        self.url = url
        self.retry_after = retry_after
        super().__init__(f"HTTP 429 for {url} (retry after {retry_after}s)")


def parse_retry_after(value: str | None, default: float) -> float:
    """Retry-After in whole seconds; anything else falls back to default."""
    if value is None:
        return default
    try:
        seconds = int(value.strip())
    except ValueError:
        return default
    return float(seconds) if seconds >= 0 else default


class wait_backoff_or_retry_after(wait_base):
    """Exponential backoff with jitter, except after a 429.

    A 429 waits exactly the server's Retry-After and does not feed the
    backoff; everything else waits min(base * 2**n, maximum) scaled by a
    jitter factor in [0.5, 1.0], where n counts only the earlier non-429
    failures of the same call.
    """

    def __init__(self, base: float, maximum: float, jitter: Callable[[float, float], float]):
        self.base = base
        self.maximum = maximum
        self.jitter = jitter

    def __call__(self, retry_state: RetryCallState) -> float:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(exc, RateLimitedError):
            return exc.retry_after
        # RetryCallState is created per call, so the counter starts at zero.
        failures = getattr(retry_state, "backoff_failures", 0) + 1
        retry_state.backoff_failures = failures
        delay = min(self.base * 2 ** (failures - 1), self.maximum)
        return delay * self.jitter(0.5, 1.0)


RETRYABLE_ERRORS = (requests.exceptions.RequestException, ValidationError, RateLimitedError)


class DocsFetcher:
    """Fetches documentation pages and the changelog for one run."""

    def __init__(
        self,
        config: MirrorConfig,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
        jitter: Callable[[float, float], float] = random.uniform,
    ):
        self.config = config
        self.session = session if session is not None else requests.Session()
        self._retrying = Retrying(
            stop=stop_after_attempt(config.max_retries),
            wait=wait_backoff_or_retry_after(
                config.retry_base_delay, config.retry_max_delay, jitter
            ),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            sleep=sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=False,
        )

    def get_text(self, url: str) -> str:
        """One GET. Raises RateLimitedError on 429, HTTPError on other failures."""
        resp = self.session.get(
            url, headers=self.config.headers(), timeout=self.config.request_timeout
        )
        if resp.status_code == 429:
            retry_after = parse_retry_after(
                resp.headers.get("Retry-After"), self.config.rate_limit_default_wait
            )
            logger.warning(f"Rate limited. Waiting {retry_after:g} seconds...")
            raise RateLimitedError(url, retry_after)
        resp.raise_for_status()
        # Markdown is served as text/* without a charset, which requests
        # would otherwise decode as latin-1.
        return resp.content.decode("utf-8", errors="replace")

    def _with_retries(self, identifier: str, fn: Callable[[], str]) -> str:
        try:
            return self._retrying(fn)
        except RetryError as e:
            last_error = e.last_attempt.exception()
            raise FetchError(identifier, e.last_attempt.attempt_number, last_error) from last_error

    def fetch_markdown_content(self, path: str, base_url: str) -> tuple[str, str]:
        """Fetch `{base_url}{path}.md`.

        Returns:
            (filename, content) with filename derived from path.

        Raises:
            FetchError once every attempt has failed (HTTP error, transport
            error or invalid content).
        """
        markdown_url = f"{base_url}{path}.md"
        filename = url_to_safe_filename(path)
        logger.info(f"Fetching: {markdown_url} -> {filename}")

        def attempt() -> str:
            content = self.get_text(markdown_url)
            validate_markdown_content(content, filename)
            return content

        content = self._with_retries(filename, attempt)
        logger.info(f"Successfully fetched and validated {filename} ({len(content)} bytes)")
        return filename, content

    def fetch_changelog(self) -> tuple[str, str]:
        """Fetch the Claude Code changelog from GitHub, with a source header."""
        url = self.config.changelog_raw_url
        header = CHANGELOG_HEADER.format(changelog_url=self.config.changelog_url)
        logger.info(f"Fetching Claude Code changelog: {url}")

        def attempt() -> str:
            content = header + self.get_text(url)
            # Measured with the header included.
            if len(content.strip()) < self.config.changelog_min_length:
                raise ValidationError(
                    CHANGELOG_FILENAME,
                    f"Changelog content too short ({len(content)} bytes)",
                )
            return content

        content = self._with_retries(CHANGELOG_FILENAME, attempt)
        logger.info(f"Successfully fetched changelog ({len(content)} bytes)")
        return CHANGELOG_FILENAME, content
