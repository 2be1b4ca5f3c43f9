"""Lint rules for skill manifests, used as the default install validator."""

import logging
import re
from collections.abc import Callable

from skillport.config import settings
from skillport.models import Diagnostic, Diagnostics, Manifest

logger = logging.getLogger("skillport.rules")

NAME_PATTERN = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")
REFERENCE_PATTERN = re.compile(r"`((?:scripts|references|assets)/[^`]+)`")

Rule = Callable[[Manifest], list[Diagnostic]]


def _diag(
    rule: str, manifest: Manifest, message: str, fix_hint: str | None = None, line: int | None = None
) -> list[Diagnostic]:
    return [Diagnostic(rule=rule, message=message, path=str(manifest.path), line=line, fix_hint=fix_hint)]


def name_format(m: Manifest) -> list[Diagnostic]:
    if NAME_PATTERN.match(m.name):
        return []
    return _diag(
        "name-format",
        m,
        f"Invalid name '{m.name}': must be lowercase alphanumeric with single hyphens",
        "Use only lowercase letters, numbers, and single hyphens",
    )


def name_length(m: Manifest) -> list[Diagnostic]:
    limit = settings.max_name_length
    if len(m.name) <= limit:
        return []
    return _diag("name-length", m, f"Name too long ({len(m.name)} chars, max {limit})")


def name_directory(m: Manifest) -> list[Diagnostic]:
    dir_name = m.root.name
    if dir_name == m.name:
        return []
    return _diag(
        "name-directory",
        m,
        f"Name '{m.name}' does not match directory name '{dir_name}'",
        f"Rename to '{dir_name}' or move to '{m.name}/SKILL.md'",
    )


def description_required(m: Manifest) -> list[Diagnostic]:
    if m.description.strip():
        return []
    return _diag(
        "description-required",
        m,
        "Description cannot be empty",
        "Add a description of what the skill does and when to use it",
    )


def description_length(m: Manifest) -> list[Diagnostic]:
    limit = settings.max_description_length
    if len(m.description) <= limit:
        return []
    return _diag("description-length", m, f"Description too long ({len(m.description)} chars, max {limit})")


def compatibility_length(m: Manifest) -> list[Diagnostic]:
    limit = settings.max_compatibility_length
    if m.compatibility is None or len(m.compatibility) <= limit:
        return []
    return _diag("compatibility-length", m, f"Compatibility too long ({len(m.compatibility)} chars, max {limit})")


def references_exist(m: Manifest) -> list[Diagnostic]:
    found = []
    for ref in REFERENCE_PATTERN.findall(m.body):
        if not (m.root / ref).exists():
            found += _diag(
                "references-exist", m, f"Referenced file not found: {ref}", f"Create {ref} or remove the reference"
            )
    return found


def body_length(m: Manifest) -> list[Diagnostic]:
    limit = settings.max_body_lines
    lines = len(m.body.splitlines())
    if lines <= limit:
        return []
    return _diag(
        "body-length",
        m,
        f"Body exceeds {limit} lines ({lines} lines)",
        "Move detailed content into references/ files",
        line=m.body_start_line + limit,
    )


def script_shebang(m: Manifest) -> list[Diagnostic]:
    scripts = m.root / "scripts"
    if not scripts.is_dir():
        return []
    found = []
    for path in sorted(scripts.iterdir()):
        if not path.is_file() or path.suffix not in {".sh", ".bash", ".py", ".js", ".ts", ""}:
            continue
        try:
            with path.open("rb") as f:
                head = f.read(2)
        except OSError:
            continue
        if head != b"#!":
            found.append(
                Diagnostic(
                    rule="script-shebang",
                    message="Script missing shebang line",
                    path=str(path),
                    fix_hint="Add a shebang such as #!/usr/bin/env bash",
                )
            )
    return found


# A finding from an ERROR rule rejects the skill; WARNING rules are reported only
ERROR_RULES: list[Rule] = [
    name_format,
    name_length,
    description_required,
    description_length,
    compatibility_length,
    references_exist,
]

WARNING_RULES: list[Rule] = [
    name_directory,
    body_length,
    script_shebang,
]


def validate_manifest(manifest: Manifest) -> Diagnostics:
    """Run every rule against a parsed manifest."""
    result = Diagnostics()
    for rule in ERROR_RULES:
        result.errors.extend(rule(manifest))
    for rule in WARNING_RULES:
        result.warnings.extend(rule(manifest))

    if result.errors:
        logger.debug("'%s' failed %d rule(s)", manifest.name, len(result.errors))
    return result
