"""Exception hierarchy for the documentation mirror.

Per-resource errors (FetchError, ValidationError) are contained by the
pipeline and counted as failures. DiscoveryError and ManifestLoadError are
recovered where they are raised. ManifestWriteError and EmptyInventoryError
abort the run.
"""


class MirrorError(Exception):
    """Base class for every error raised by claude_docs_mirror."""


class DiscoveryError(MirrorError):
    """No sitemap candidate produced a usable <loc> list."""


class EmptyInventoryError(MirrorError):
    """Discovery finished but there is nothing to fetch."""


class ValidationError(MirrorError):
    """Fetched content is not acceptable markdown documentation."""

    def __init__(self, identifier: str, reason: str):
        self.identifier = identifier
        self.reason = reason
        super().__init__(f"{identifier}: {reason}")


class FetchError(MirrorError):
    """A resource could not be fetched within the retry budget."""

    def __init__(self, identifier: str, attempts: int, last_error: BaseException | None):
        self.identifier = identifier
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Failed to fetch {identifier} after {attempts} attempts: {last_error}"
        )


class ManifestLoadError(MirrorError):
    """The manifest on disk exists but cannot be used."""


class ManifestWriteError(MirrorError):
    """The manifest could not be persisted."""
