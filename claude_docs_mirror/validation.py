"""Sanity checks that fetched text is markdown documentation.

The docs site answers some .md URLs with an HTML error or landing page and
a 200 status, so the status code alone is not enough.
"""

import logging

from claude_docs_mirror.errors import ValidationError

logger = logging.getLogger(__name__)

MIN_CONTENT_LENGTH = 50
SCAN_LINES = 50
MIN_MARKDOWN_LINES = 3

MARKDOWN_INDICATORS = ["# ", "## ", "### ", "```", "- ", "* ", "1. ", "[", "**", "_", "> "]
DOC_KEYWORDS = ["installation", "usage", "example", "api", "configuration", "claude", "code"]


def validate_markdown_content(content: str, identifier: str) -> None:
    """Raise ValidationError unless content looks like a markdown doc page.

    Checks, in order: not HTML, long enough, enough markdown syntax in the
    first lines. A page without any of the usual documentation keywords is
    only logged.
    """
    if not content or content.startswith("<!DOCTYPE") or "<html" in content[:100]:
        raise ValidationError(identifier, "Received HTML instead of markdown")

    if len(content.strip()) < MIN_CONTENT_LENGTH:
        raise ValidationError(identifier, f"Content too short ({len(content)} bytes)")

    indicator_count = 0
    for line in content.split("\n")[:SCAN_LINES]:
        stripped = line.strip()
        if any(stripped.startswith(ind) or ind in line for ind in MARKDOWN_INDICATORS):
            indicator_count += 1

    if indicator_count < MIN_MARKDOWN_LINES:
        raise ValidationError(
            identifier,
            f"Content doesn't appear to be markdown "
            f"(only {indicator_count} markdown indicators found)",
        )

    content_lower = content.lower()
    if not any(keyword in content_lower for keyword in DOC_KEYWORDS):
        logger.warning(f"Content for {identifier} doesn't contain expected documentation patterns")
