"""Mirror the Claude Code documentation site to local markdown files."""

__version__ = "3.1.0"

from claude_docs_mirror.config import MirrorConfig  # noqa: E402
from claude_docs_mirror.errors import (  # noqa: E402
    DiscoveryError,
    EmptyInventoryError,
    FetchError,
    ManifestLoadError,
    ManifestWriteError,
    MirrorError,
    ValidationError,
)
from claude_docs_mirror.pipeline import MirrorResult, run_mirror  # noqa: E402

__all__ = [
    "__version__",
    "DiscoveryError",
    "EmptyInventoryError",
    "FetchError",
    "ManifestLoadError",
    "ManifestWriteError",
    "MirrorConfig",
    "MirrorError",
    "MirrorResult",
    "ValidationError",
    "run_mirror",
]
