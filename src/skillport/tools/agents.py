"""Agent listing tool."""

from pathlib import Path

from skillport.core.agents import AGENTS, detect_agents, skills_dir
from skillport.core.installer import list_installed
from skillport.models import Scope


def list_agents(project_root: Path | None = None, home: Path | None = None) -> list[dict]:
    """Every known agent with its skills directories, detection and feature support."""
    project_root = Path(project_root) if project_root else Path.cwd()
    detected = {
        scope: {spec.name for spec in detect_agents(scope, project_root, home)}
        for scope in (Scope.PROJECT, Scope.GLOBAL)
    }

    agents = []
    for spec in AGENTS.values():
        entry = {
            "name": spec.name,
            "display_name": spec.display_name,
            "features": spec.features.model_dump(),
        }
        for scope in (Scope.PROJECT, Scope.GLOBAL):
            entry[scope.value] = {
                "path": str(skills_dir(spec, scope, project_root, home)),
                "detected": spec.name in detected[scope],
                "skills": len(list_installed(spec.name, scope, project_root, home)),
            }
        agents.append(entry)
    return agents
