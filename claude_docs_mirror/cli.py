"""
Claude Code Docs Mirror
=======================
Fetches the Claude Code documentation as markdown into a local directory,
rewriting only files whose content changed and deleting files for pages that
disappeared. State lives in docs_manifest.json next to the files.

Usage:
    claude-docs-mirror
    claude-docs-mirror --docs-dir ./docs
    python -m claude_docs_mirror -v

Exit status:
    0  every page and the changelog were fetched
    1  some resources failed (manifest and the rest of the files were still written)
    2  the run was aborted (nothing discovered, or the manifest could not be saved)
"""

import argparse
import logging
import os
import sys

from claude_docs_mirror import __version__
from claude_docs_mirror.config import MirrorConfig
from claude_docs_mirror.errors import EmptyInventoryError, ManifestWriteError
from claude_docs_mirror.pipeline import MirrorResult, run_mirror

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_PARTIAL_FAILURE = 1
EXIT_ABORTED = 2


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="claude-docs-mirror",
        description="Mirror the Claude Code documentation to local markdown files.",
        epilog=(
            "Environment:\n"
            "  CLAUDE_DOCS_DIR     default for --docs-dir\n"
            "  GITHUB_REPOSITORY   owner/repo recorded in the manifest\n"
            "  GITHUB_REF_NAME     branch recorded in the manifest\n"
            "\n"
            "Exit status:\n"
            "  0  all resources fetched\n"
            "  1  some resources failed (partial output written)\n"
            "  2  run aborted\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--docs-dir",
        default=os.environ.get("CLAUDE_DOCS_DIR") or os.path.join(os.getcwd(), "docs"),
        help="Output directory for markdown files and docs_manifest.json (default: ./docs)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def print_summary(result: MirrorResult) -> None:
    print(f"\n{'='*60}")
    print("DONE" if result.ok else "DONE WITH FAILURES")
    print(f"{'='*60}")
    print(f"  Duration:          {result.duration_seconds:.2f}s")
    print(f"  Sitemap:           {result.sitemap_url or '(fallback page list)'}")
    print(f"  Base URL:          {result.base_url}")
    print(f"  Discovered pages:  {result.total_pages_discovered}")
    print(f"  Successful:        {result.successful}/{result.total_expected} (including changelog)")
    print(f"  Failed:            {result.failed}")
    if result.removed:
        print(f"  Removed:           {len(result.removed)} obsolete file(s)")
    if result.failed_pages:
        print("\n  Failed pages (will retry next run):")
        for page in result.failed_pages:
            print(f"    - {page}")
    print(f"{'='*60}")


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.verbose)

    config = MirrorConfig.from_env()
    docs_dir = os.path.abspath(args.docs_dir)
    os.makedirs(docs_dir, exist_ok=True)

    logger.info(f"Starting Claude Code documentation fetch (v{__version__})")
    logger.info(f"GitHub repository: {config.github_repository}")
    logger.info(f"Output directory: {docs_dir}")

    try:
        result = run_mirror(docs_dir, config)
    except (EmptyInventoryError, ManifestWriteError) as e:
        logger.error(f"Run aborted: {e}")
        return EXIT_ABORTED

    print_summary(result)
    if not result.ok:
        logger.error(f"Fetch completed with {result.failed} failure(s)")
        return EXIT_PARTIAL_FAILURE
    logger.info("All pages fetched successfully!")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
