"""Map documentation URL paths to flat local filenames."""

# Checked in order; the first one present in the path wins.
KNOWN_PREFIXES = [
    "/docs/en/",               # https://code.claude.com/docs/en/overview
    "/en/docs/claude-code/",   # older docs.anthropic.com layout
    "/docs/claude-code/",
    "/claude-code/",
]

NESTED_SEPARATOR = "__"
EXTENSION = ".md"


def url_to_safe_filename(url_path: str) -> str:
    """Convert a URL path to a flat, stable filename.

    Nested topics are joined with a double underscore so they cannot
    collide with a sibling page of the same leaf name.

    Examples:
        /en/docs/claude-code/sdk/migration-guide -> sdk__migration-guide.md
        /docs/en/setup -> setup.md
        hooks -> hooks.md
    """
    path = url_path
    for prefix in KNOWN_PREFIXES:
        if prefix in url_path:
            path = url_path.split(prefix)[-1]
            break

    if path == url_path:
        if "claude-code/" in url_path:
            path = url_path.split("claude-code/")[-1]
        elif "/docs/en/" in url_path:
            path = url_path.split("/docs/en/")[-1]

    safe_name = path.replace("/", NESTED_SEPARATOR)
    if not safe_name.endswith(EXTENSION):
        safe_name += EXTENSION
    return safe_name
