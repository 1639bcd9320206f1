"""Shared test data and fakes."""

from datetime import datetime, timezone

SITEMAP_URLS = [
    "https://one.test/sitemap.xml",
    "https://two.test/sitemap.xml",
    "https://three.test/sitemap.xml",
]
DOCS_BASE = "https://docs.test"
CHANGELOG_RAW_URL = "https://raw.test/anthropics/claude-code/main/CHANGELOG.md"
CHANGELOG_URL = "https://github.test/anthropics/claude-code/blob/main/CHANGELOG.md"
FIXED_NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)

VALID_MARKDOWN = """# Hooks

## Installation

Hooks run shell commands at fixed points in a session.

- Open the settings file
- Add a hook entry

```bash
claude --help
```
"""


def sitemap_xml(*urls: str) -> str:
    locs = "\n".join(f"  <url><loc>{u}</loc></url>" for u in urls)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">\n'
        f"{locs}\n"
        "</urlset>\n"
    )


class RecordingSleep:
    """Stands in for time.sleep; remembers every requested delay."""

    def __init__(self):
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def no_jitter(low: float, high: float) -> float:
    return high


def fixed_now() -> datetime:
    return FIXED_NOW
