"""Lint and property tools: check skills in place without installing them."""

import logging
from pathlib import Path

from skillport.config import settings
from skillport.core.discovery import find_manifests
from skillport.core.manifest import parse_manifest
from skillport.core.rules import validate_manifest
from skillport.errors import InvalidArgument, ManifestError, NoCandidatesFound

logger = logging.getLogger("skillport.tools.lint")

_PROPERTIES = ("name", "description", "license", "compatibility", "metadata", "allowed_tools")


def _manifests(path: str | Path, ignore_patterns: list[str] | None) -> tuple[Path, list[Path]]:
    root = Path(path).expanduser()
    if not root.exists():
        raise InvalidArgument(f"Path not found: {root}")
    manifests = find_manifests(root, ignore_patterns)
    if not manifests:
        raise NoCandidatesFound(f"No skills found in {root}")
    return root, manifests


def lint_skills(
    path: str | Path,
    strict: bool | None = None,
    ignore_patterns: list[str] | None = None,
) -> dict:
    """Validate every SKILL.md under a path.

    A manifest that cannot be parsed counts as an error on that skill.

    Args:
        path: Skill directory, SKILL.md file, or any tree holding skills
        strict: Fail on warnings too (default: settings.lint_strict)
        ignore_patterns: Directory globs to skip (default: settings.discovery_ignore)

    Returns:
        Dictionary with per-skill diagnostics, totals and an exit code
        (0 clean, 1 failures).
    """
    strict = settings.lint_strict if strict is None else strict
    root, manifests = _manifests(path, ignore_patterns)

    skills = []
    for manifest_path in manifests:
        try:
            manifest = parse_manifest(manifest_path)
        except ManifestError as e:
            skills.append({
                "name": manifest_path.parent.name,
                "path": str(manifest_path),
                "errors": [{"rule": "manifest", "message": e.reason, "path": str(manifest_path)}],
                "warnings": [],
            })
            continue
        result = validate_manifest(manifest)
        skills.append({
            "name": manifest.name,
            "path": str(manifest_path),
            "errors": [d.model_dump(mode="json", exclude_none=True) for d in result.errors],
            "warnings": [d.model_dump(mode="json", exclude_none=True) for d in result.warnings],
        })

    errors = sum(len(s["errors"]) for s in skills)
    warnings = sum(len(s["warnings"]) for s in skills)
    ok = errors == 0 and not (strict and warnings)
    logger.info("Linted %d skill(s) in %s: %d error(s), %d warning(s)", len(skills), root, errors, warnings)
    return {
        "path": str(root),
        "strict": strict,
        "ok": ok,
        "errors": errors,
        "warnings": warnings,
        "exit_code": 0 if ok else 1,
        "skills": skills,
    }


def read_properties(path: str | Path, ignore_patterns: list[str] | None = None) -> dict:
    """Front matter properties of every skill under a path.

    Unset optional fields are omitted. Manifests that fail to parse are
    listed under ``errors`` and make the exit code 1.
    """
    root, manifests = _manifests(path, ignore_patterns)

    properties, errors = [], []
    for manifest_path in manifests:
        try:
            manifest = parse_manifest(manifest_path)
        except ManifestError as e:
            errors.append({"path": str(manifest_path), "error": e.reason})
            continue
        data = {key: getattr(manifest, key) for key in _PROPERTIES}
        data = {key: value for key, value in data.items() if value not in (None, {})}
        data["path"] = str(manifest_path)
        properties.append(data)

    return {
        "path": str(root),
        "total": len(properties),
        "skills": properties,
        "errors": errors,
        "exit_code": 1 if errors else 0,
    }
