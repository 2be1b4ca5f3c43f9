"""SKILL.md parsing: YAML front matter plus markdown body."""

import logging
from pathlib import Path

import yaml

from skillport.errors import ManifestError
from skillport.models import Manifest

logger = logging.getLogger("skillport.manifest")

MANIFEST_FILE = "SKILL.md"


def parse_manifest(path: Path) -> Manifest:
    """Parse a SKILL.md file.

    Raises ManifestError when the file cannot be read, the front matter is
    missing or unclosed, the YAML is invalid, or ``name`` is absent.
    """
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ManifestError(path, f"cannot read file: {e}") from e
    return parse_manifest_content(path, content)


def parse_manifest_content(path: Path, content: str) -> Manifest:
    frontmatter_raw, body, body_start_line = _split(path, content)

    try:
        meta = yaml.safe_load(frontmatter_raw) if frontmatter_raw.strip() else {}
    except yaml.YAMLError as e:
        raise ManifestError(path, f"invalid YAML in front matter: {e}") from e
    if not isinstance(meta, dict):
        raise ManifestError(path, "front matter must be a YAML mapping")

    name = meta.get("name")
    if name is None or str(name).strip() == "":
        raise ManifestError(path, "front matter is missing required field 'name'")

    metadata = meta.get("metadata") or {}
    if not isinstance(metadata, dict):
        metadata = {}

    allowed_tools = meta.get("allowed-tools", meta.get("allowed_tools"))
    if isinstance(allowed_tools, list):
        allowed_tools = " ".join(str(t) for t in allowed_tools)

    return Manifest(
        path=path,
        name=str(name).strip(),
        description=str(meta.get("description") or "").strip(),
        license=_opt_str(meta.get("license")),
        compatibility=_opt_str(meta.get("compatibility")),
        metadata=metadata,
        allowed_tools=_opt_str(allowed_tools),
        context=_opt_str(meta.get("context")),
        hooks=meta.get("hooks"),
        body=body,
        body_start_line=body_start_line,
    )


def _split(path: Path, content: str) -> tuple[str, str, int]:
    """Split content into (front matter, body, body start line)."""
    stripped = content.lstrip("\ufeff").lstrip()
    skipped_lines = content[: len(content) - len(stripped)].count("\n")
    content = stripped
    if not content.startswith("---"):
        raise ManifestError(path, "SKILL.md must start with YAML front matter (---)")

    after_open = content[3:]
    close = after_open.find("\n---")
    if close < 0:
        raise ManifestError(path, "front matter is not closed (missing closing ---)")

    frontmatter = after_open[:close].strip()
    body_start = 3 + close + len("\n---")
    # Skip the rest of the closing delimiter line
    newline = content.find("\n", body_start)
    rest = content[newline + 1:] if newline >= 0 else ""
    body = rest.lstrip("\n")
    # 1-based line of the first non-blank body line in the original file
    head = content[: newline + 1 if newline >= 0 else len(content)]
    body_start_line = skipped_lines + head.count("\n") + (len(rest) - len(body)) + 1
    return frontmatter, body, body_start_line


def _opt_str(value) -> str | None:
    if value is None:
        return None
    return str(value)


def read_summary(skill_dir: Path) -> tuple[str, str] | None:
    """Best-effort (name, description) of an installed skill directory."""
    manifest_path = skill_dir / MANIFEST_FILE
    if not manifest_path.is_file():
        return None
    try:
        manifest = parse_manifest(manifest_path)
    except ManifestError as e:
        logger.debug("Unreadable manifest in %s: %s", skill_dir, e)
        return skill_dir.name, ""
    return manifest.name, manifest.description
