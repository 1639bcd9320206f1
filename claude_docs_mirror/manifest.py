"""Manifest persistence and the on-disk side of the mirror.

The manifest (docs_manifest.json) maps each mirrored filename to where it
came from and the hash of what is currently on disk. It is read once at the
start of a run and replaced wholesale at the end.
"""

import json
import logging
import os
from collections.abc import Callable, Iterable
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic import ValidationError as PydanticValidationError

from claude_docs_mirror.config import MirrorConfig
from claude_docs_mirror.errors import ManifestLoadError, ManifestWriteError
from claude_docs_mirror.hashing import content_hash

logger = logging.getLogger(__name__)

MANIFEST_FILE = "docs_manifest.json"
MANIFEST_DESCRIPTION = (
    "Claude Code documentation manifest. "
    "Keys are filenames, append to base_url for full URL."
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class ManifestEntry(BaseModel):
    """One mirrored file. `last_updated` moves only when `hash` does."""

    original_url: str = ""
    original_md_url: str | None = None
    original_raw_url: str | None = None
    hash: str = ""
    last_updated: str | None = None
    source: str | None = None


class FetchMetadata(BaseModel):
    last_fetch_completed: str
    fetch_duration_seconds: float
    total_pages_discovered: int
    pages_fetched_successfully: int
    pages_failed: int
    failed_pages: list[str]
    sitemap_url: str | None
    base_url: str
    total_files: int
    fetch_tool_version: str


class Manifest(BaseModel):
    # Hand-edited manifests may carry extra keys; keep them rather than
    # refusing the file.
    model_config = ConfigDict(extra="allow")

    files: dict[str, ManifestEntry] = {}
    last_updated: str | None = None
    base_url: str | None = None
    github_repository: str | None = None
    github_ref: str | None = None
    description: str | None = None
    fetch_metadata: FetchMetadata | None = None

    @field_validator("files", mode="before")
    @classmethod
    def default_files(cls, v):
        return {} if v is None else v

    def to_json_dict(self) -> dict:
        """Serializable form: unset optional fields are omitted, except
        fetch_metadata.sitemap_url which is written as null."""
        data = self.model_dump(exclude_none=True, exclude={"fetch_metadata"})
        if self.fetch_metadata is not None:
            data["fetch_metadata"] = self.fetch_metadata.model_dump()
        return data


# ---------------------------------------------------------------------------
# Load / save
# ---------------------------------------------------------------------------


def _valid_entries(files: dict) -> dict[str, ManifestEntry]:
    entries = {}
    for name, raw in files.items():
        try:
            entries[name] = ManifestEntry.model_validate(raw)
        except PydanticValidationError as e:
            logger.warning(f"Dropping malformed manifest entry {name}: {e.error_count()} error(s)")
    return entries


def _read_manifest(manifest_path: str) -> Manifest:
    try:
        with open(manifest_path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ManifestLoadError(f"Could not read {manifest_path}: {e}") from e

    if not isinstance(data, dict):
        raise ManifestLoadError(f"{manifest_path} is not a JSON object")

    files = data.get("files") or {}
    if not isinstance(files, dict):
        raise ManifestLoadError(f"{manifest_path} has no files mapping")

    # Malformed entries and fields are dropped individually; the rest still
    # drives cleanup.
    data = dict(data, files=_valid_entries(files))
    try:
        return Manifest.model_validate(data)
    except PydanticValidationError as e:
        bad_fields = {err["loc"][0] for err in e.errors() if err["loc"]} - {"files"}
        for field in sorted(bad_fields, key=str):
            logger.warning(f"Dropping malformed manifest field {field}")
            data.pop(field, None)
    try:
        return Manifest.model_validate(data)
    except PydanticValidationError as e:
        raise ManifestLoadError(f"{manifest_path} is malformed: {e}") from e


def load_manifest(docs_dir: str) -> Manifest:
    """Load the manifest from docs_dir, or an empty one.

    A corrupt manifest must never block fetching: it is logged and treated
    as a first run.
    """
    manifest_path = os.path.join(docs_dir, MANIFEST_FILE)
    if not os.path.exists(manifest_path):
        return Manifest()
    try:
        return _read_manifest(manifest_path)
    except ManifestLoadError as e:
        logger.warning(f"Failed to load manifest ({e}) -- treating as first run")
        return Manifest()


def save_manifest(
    docs_dir: str,
    manifest: Manifest,
    config: MirrorConfig | None = None,
    now: Callable[[], datetime] = utc_now,
) -> Manifest:
    """Stamp provenance onto manifest and write it atomically.

    Repository and ref come from config (GITHUB_REPOSITORY / GITHUB_REF_NAME
    when not given), already validated and defaulted by MirrorConfig.

    Raises:
        ManifestWriteError if the file cannot be written.
    """
    if config is None:
        config = MirrorConfig.from_env()

    manifest.last_updated = now().isoformat()
    manifest.github_repository = config.github_repository
    manifest.github_ref = config.github_ref
    manifest.base_url = config.raw_base_url
    manifest.description = MANIFEST_DESCRIPTION

    manifest_path = os.path.join(docs_dir, MANIFEST_FILE)
    temp_path = manifest_path + ".tmp"
    try:
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(manifest.to_json_dict(), f, indent=2, ensure_ascii=False)
        os.replace(temp_path, manifest_path)
    except OSError as e:
        raise ManifestWriteError(f"Could not write {manifest_path}: {e}") from e

    return manifest


# ---------------------------------------------------------------------------
# Document files
# ---------------------------------------------------------------------------


def _is_inside(docs_dir: str, path: str) -> bool:
    root = os.path.abspath(docs_dir)
    return os.path.commonpath([root, os.path.abspath(path)]) == root


def save_markdown_file(docs_dir: str, filename: str, content: str) -> str:
    """Write one document and return the hash of what was written."""
    file_path = os.path.join(docs_dir, filename)
    try:
        with open(file_path, "w", encoding="utf-8", newline="") as f:
            f.write(content)
    except OSError as e:
        logger.error(f"Failed to save {filename}: {e}")
        raise
    logger.info(f"Saved: {filename}")
    return content_hash(content)


def cleanup_old_files(
    docs_dir: str,
    current_files: Iterable[str],
    manifest: Manifest,
) -> list[str]:
    """Delete files tracked by the previous manifest that this run did not fetch.

    Only names present in the old manifest are candidates, so files that
    were never mirrored are left alone. The manifest itself is never removed.

    Returns:
        Filenames actually removed from disk.
    """
    previous_files = set(manifest.files)
    files_to_remove = sorted(previous_files - set(current_files))

    removed = []
    for filename in files_to_remove:
        if filename == MANIFEST_FILE:
            continue
        file_path = os.path.join(docs_dir, filename)
        if not _is_inside(docs_dir, file_path):
            logger.warning(f"Refusing to remove {filename}: outside {docs_dir}")
            continue
        if os.path.isfile(file_path):
            logger.info(f"Removing obsolete file: {filename}")
            os.remove(file_path)
            removed.append(filename)
    return removed
