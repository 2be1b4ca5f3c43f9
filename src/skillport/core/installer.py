"""Skill installation: copy a validated candidate into an agent's skills directory."""

import asyncio
import inspect
import logging
import os
import shutil
import tempfile
import uuid
from collections.abc import Awaitable, Callable
from pathlib import Path

from skillport.core.agents import get_agent, skills_dir
from skillport.core.manifest import read_summary
from skillport.errors import InstallIoError, InvalidArgument
from skillport.models import (
    FEATURE_LABELS,
    Candidate,
    InstallationOutcome,
    InstalledSkill,
    InstallTarget,
    OutcomeStatus,
    OverwritePolicy,
    Scope,
)

logger = logging.getLogger("skillport.installer")

ALREADY_EXISTS = "already_exists"

ConfirmFn = Callable[[Candidate, InstallTarget], bool | Awaitable[bool]]

# Lock registry so two installs never write the same destination at once
_install_locks: dict[str, asyncio.Lock] = {}


def _get_lock(destination: Path) -> asyncio.Lock:
    key = str(destination)
    if key not in _install_locks:
        _install_locks[key] = asyncio.Lock()
    return _install_locks[key]


def compatibility_warnings(candidate: Candidate, target: InstallTarget) -> list[str]:
    """Features the skill uses that the target agent does not support."""
    missing = target.feature_support.missing(candidate.manifest.required_features())
    return [
        f"'{candidate.name}' uses {FEATURE_LABELS.get(feature, feature)}, which {target.agent} does not support"
        for feature in missing
    ]


async def install_skill(
    candidate: Candidate,
    target: InstallTarget,
    policy: OverwritePolicy,
    confirm: ConfirmFn | None = None,
) -> InstallationOutcome:
    """Install one candidate into one target directory.

    Pipeline:
    1. Compute compatibility warnings (never block)
    2. Resolve a conflict with an existing directory by policy
    3. Copy into a staging directory beside the destination
    4. Swap the staged copy into place

    A failed copy leaves any previously installed version untouched and is
    reported as a FAILED outcome rather than raised.
    """
    destination = target.directory / candidate.name
    warnings = compatibility_warnings(candidate, target)
    for warning in warnings:
        logger.warning(warning)

    def outcome(status: OutcomeStatus, **kwargs) -> InstallationOutcome:
        return InstallationOutcome(
            skill_name=candidate.name,
            agent=target.agent,
            scope=target.scope,
            destination=destination,
            status=status,
            warnings=warnings,
            **kwargs,
        )

    if candidate.name in ("", ".", "..") or "/" in candidate.name or "\\" in candidate.name:
        return outcome(OutcomeStatus.FAILED, error=f"Skill name '{candidate.name}' is not a valid directory name")

    lock = _get_lock(destination)
    async with lock:
        exists = destination.exists() or destination.is_symlink()

        if exists and policy == OverwritePolicy.INTERACTIVE:
            approved = False
            if confirm is not None:
                answer = confirm(candidate, target)
                approved = bool(await answer) if inspect.isawaitable(answer) else bool(answer)
            if not approved:
                logger.info("Skipped '%s' for %s: already installed", candidate.name, target.agent)
                return outcome(OutcomeStatus.SKIPPED, reason=ALREADY_EXISTS)

        try:
            await asyncio.to_thread(_copy_and_swap, candidate.root, destination)
        except (OSError, InstallIoError) as e:
            logger.error("Install failed for '%s' -> %s: %s", candidate.name, destination, e)
            return outcome(OutcomeStatus.FAILED, error=str(e))

    status = OutcomeStatus.OVERWRITTEN if exists else OutcomeStatus.INSTALLED
    logger.info("%s '%s' -> %s", status.value.capitalize(), candidate.name, destination)
    return outcome(status)


def _copy_and_swap(source: Path, destination: Path) -> None:
    if not source.is_dir():
        raise InstallIoError(f"Skill directory not found: {source}")

    destination.parent.mkdir(parents=True, exist_ok=True)
    staging = Path(tempfile.mkdtemp(prefix=f".{destination.name}.", dir=destination.parent))
    try:
        shutil.copytree(
            source,
            staging,
            symlinks=True,
            ignore=shutil.ignore_patterns(".git"),
            dirs_exist_ok=True,
        )
        _swap(staging, destination)
    except BaseException:
        shutil.rmtree(staging, ignore_errors=True)
        raise


def _swap(staging: Path, destination: Path) -> None:
    """Replace ``destination`` with ``staging``, restoring the old tree on failure."""
    backup = None
    if destination.exists() or destination.is_symlink():
        backup = destination.with_name(f".{destination.name}.old-{uuid.uuid4().hex[:8]}")
        os.replace(destination, backup)
    try:
        os.replace(staging, destination)
    except OSError:
        if backup is not None:
            os.replace(backup, destination)
        raise
    if backup is not None:
        if backup.is_symlink() or backup.is_file():
            backup.unlink()
        else:
            shutil.rmtree(backup, ignore_errors=True)


def list_installed(
    agent: str,
    scope: Scope,
    project_root: Path,
    home: Path | None = None,
) -> list[InstalledSkill]:
    """Skills present in one agent's skills directory."""
    spec = get_agent(agent)
    directory = skills_dir(spec, scope, project_root, home)
    if not directory.is_dir():
        return []

    installed = []
    for child in sorted(directory.iterdir()):
        if child.name.startswith(".") or not child.is_dir():
            continue
        summary = read_summary(child)
        if summary is None:
            continue
        name, description = summary
        installed.append(InstalledSkill(name=name, description=description, path=child, agent=spec.name, scope=scope))
    return installed


async def remove_skill(name: str, target: InstallTarget) -> bool:
    """Delete an installed skill directory. Returns False when it is not installed."""
    if not name or name in (".", "..") or "/" in name or "\\" in name:
        raise InvalidArgument(f"Invalid skill name '{name}'")

    destination = target.directory / name
    if destination.parent.resolve() != target.directory.resolve():
        raise InvalidArgument(f"Refusing to remove '{name}' outside {target.directory}")

    lock = _get_lock(destination)
    async with lock:
        if destination.is_symlink():
            destination.unlink()
        elif destination.is_dir():
            await asyncio.to_thread(shutil.rmtree, destination)
        else:
            return False

    logger.info("Removed '%s' from %s", name, target.directory)
    return True
