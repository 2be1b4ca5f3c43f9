"""Inventory tools: list and remove installed skills."""

from pathlib import Path

from skillport.config import settings
from skillport.core.agents import resolve_targets
from skillport.core.installer import list_installed
from skillport.core.installer import remove_skill as _remove
from skillport.models import Scope


def list_skills(
    agents: str | list[str] | None = None,
    scope: Scope = Scope.PROJECT,
    project_root: Path | None = None,
    home: Path | None = None,
) -> dict:
    """List installed skills per agent.

    Args:
        agents: Agent name, list of names, or "all" (default: configured agent)
        scope: Project-local or user-global skills directories

    Returns:
        Dictionary with the total count and one entry per installed skill.
    """
    project_root = Path(project_root) if project_root else Path.cwd()
    targets = resolve_targets(agents, scope, project_root, settings.default_agent, home=home)

    skills = []
    for target in targets:
        for skill in list_installed(target.agent, scope, project_root, home):
            skills.append(skill.model_dump(mode="json"))

    return {"total": len(skills), "scope": scope.value, "skills": skills}


async def remove_skill(
    name: str,
    agents: str | list[str] | None = None,
    scope: Scope = Scope.PROJECT,
    project_root: Path | None = None,
    home: Path | None = None,
) -> dict:
    """Remove an installed skill from every requested agent.

    Returns:
        Dictionary with the agents the skill was removed from and those where
        it was not installed.
    """
    project_root = Path(project_root) if project_root else Path.cwd()
    targets = resolve_targets(agents, scope, project_root, settings.default_agent, home=home)

    removed, missing = [], []
    for target in targets:
        if await _remove(name, target):
            removed.append(target.agent)
        else:
            missing.append(target.agent)
    return {"name": name, "removed_from": removed, "not_installed": missing}
