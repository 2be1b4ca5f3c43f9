"""Skill discovery: locate SKILL.md manifests in a materialized tree."""

import fnmatch
import logging
import os
from pathlib import Path

from skillport.config import settings
from skillport.core.agents import AGENTS
from skillport.core.manifest import MANIFEST_FILE, parse_manifest
from skillport.errors import ManifestError
from skillport.models import Candidate

logger = logging.getLogger("skillport.discovery")


def discover(
    tree_root: Path,
    ignore_patterns: list[str] | None = None,
    default_agent: str | None = None,
) -> list[Candidate]:
    """Find skill candidates under ``tree_root``.

    Strategies, first one that yields anything wins:
    1. A manifest at the root (or ``tree_root`` is a SKILL.md file)
    2. ``skills/*/SKILL.md``
    3. Agent convention directories (``.claude/skills/*`` etc.), default agent first
    4. Recursive walk, pruning directories matched by ``ignore_patterns``

    Candidates are named from their manifest, de-duplicated by root and
    sorted by name. Manifests that fail to parse are logged and skipped.
    """
    tree_root = Path(tree_root)
    if ignore_patterns is None:
        ignore_patterns = settings.discovery_ignore

    if tree_root.is_file():
        if tree_root.name != MANIFEST_FILE:
            return []
        return _load([tree_root])

    strategies = [
        ("root", lambda: _root_manifest(tree_root)),
        ("skills/", lambda: _children(tree_root / "skills")),
        ("agent directories", lambda: _agent_dirs(tree_root, default_agent or settings.default_agent)),
        ("recursive walk", lambda: find_manifests(tree_root, ignore_patterns)),
    ]
    for label, strategy in strategies:
        paths = strategy()
        if not paths:
            continue
        candidates = _load(paths)
        if candidates:
            logger.info("Discovered %d skill(s) in %s via %s", len(candidates), tree_root, label)
            return candidates

    logger.info("No skills found in %s", tree_root)
    return []


def _root_manifest(root: Path) -> list[Path]:
    manifest = root / MANIFEST_FILE
    return [manifest] if manifest.is_file() else []


def _children(directory: Path) -> list[Path]:
    """SKILL.md files one level below ``directory``."""
    if not directory.is_dir():
        return []
    found = []
    for child in sorted(directory.iterdir()):
        if child.is_symlink() or not child.is_dir():
            continue
        manifest = child / MANIFEST_FILE
        if manifest.is_file():
            found.append(manifest)
    return found


def _agent_dirs(root: Path, default_agent: str) -> list[Path]:
    ordered = sorted(AGENTS.values(), key=lambda spec: spec.name != default_agent)
    found: list[Path] = []
    seen: set[str] = set()
    for spec in ordered:
        if spec.project_dir in seen:
            continue
        seen.add(spec.project_dir)
        found.extend(_children(root / spec.project_dir))
    return found


def is_ignored(rel_path: str, name: str, patterns: list[str]) -> bool:
    """True when a directory matches any ignore glob, by name or by relative path."""
    for pattern in patterns:
        pattern = pattern.strip().rstrip("/")
        if not pattern:
            continue
        if fnmatch.fnmatchcase(name, pattern) or fnmatch.fnmatchcase(rel_path, pattern):
            return True
        # "**/x" also matches a top-level "x"
        if pattern.startswith("**/") and fnmatch.fnmatchcase(rel_path, pattern[3:]):
            return True
    return False


def find_manifests(root: Path, ignore_patterns: list[str] | None = None) -> list[Path]:
    """Every SKILL.md under ``root``, pruning ignored directories and ``.git``."""
    root = Path(root)
    if root.is_file():
        return [root] if root.name == MANIFEST_FILE else []
    patterns = settings.discovery_ignore if ignore_patterns is None else ignore_patterns

    found: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        kept = []
        for name in sorted(dirnames):
            rel = (current / name).relative_to(root).as_posix()
            if name == ".git" or is_ignored(rel, name, patterns):
                logger.debug("Skipping ignored directory %s", rel)
                continue
            kept.append(name)
        dirnames[:] = kept

        if MANIFEST_FILE in filenames:
            found.append(current / MANIFEST_FILE)
    return found


def _load(paths: list[Path]) -> list[Candidate]:
    by_root: dict[Path, Candidate] = {}
    for path in paths:
        try:
            manifest = parse_manifest(path)
        except ManifestError as e:
            logger.warning("Skipping %s: %s", path, e.reason)
            continue
        root = path.parent
        if root in by_root:
            continue
        by_root[root] = Candidate(root=root, name=manifest.name, manifest=manifest)
    return sorted(by_root.values(), key=lambda c: (c.name, str(c.root)))
