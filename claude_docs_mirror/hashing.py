"""Content fingerprints used for change detection."""

import hashlib


def content_hash(content: str) -> str:
    """sha256 hex digest of the utf-8 encoded content."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def content_has_changed(content: str, previous_hash: str | None) -> bool:
    """Return True if content differs from what previous_hash fingerprints.

    A missing previous hash always counts as a change.
    """
    if not previous_hash:
        return True
    return content_hash(content) != previous_hash
