"""Agent table and install-target resolution."""

import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from skillport.config import settings
from skillport.errors import InvalidArgument
from skillport.models import FeatureSet, InstallTarget, Scope

logger = logging.getLogger("skillport.agents")

ALL = "all"


class AgentSpec(BaseModel):
    """Where an agent looks for skills and which optional features it understands."""

    model_config = ConfigDict(frozen=True)

    name: str
    display_name: str
    project_dir: str  # relative to the project root
    global_dir: str  # relative to the home directory
    project_probe: str  # presence marks the agent as used in a project
    global_probe: str  # presence marks the agent as installed for the user
    features: FeatureSet = FeatureSet()


_BASIC = FeatureSet(scripts=True)

AGENTS: dict[str, AgentSpec] = {
    spec.name: spec
    for spec in [
        AgentSpec(
            name="opencode",
            display_name="OpenCode",
            project_dir=".opencode/skill",
            global_dir=".config/opencode/skill",
            project_probe=".opencode",
            global_probe=".config/opencode",
            features=_BASIC,
        ),
        AgentSpec(
            name="claude",
            display_name="Claude Code",
            project_dir=".claude/skills",
            global_dir=".claude/skills",
            project_probe=".claude",
            global_probe=".claude",
            features=FeatureSet(context_fork=True, hooks=True, allowed_tools=True, scripts=True),
        ),
        AgentSpec(
            name="codex",
            display_name="Codex",
            project_dir=".codex/skills",
            global_dir=".codex/skills",
            project_probe=".codex",
            global_probe=".codex",
            features=_BASIC,
        ),
        AgentSpec(
            name="cursor",
            display_name="Cursor",
            project_dir=".cursor/skills",
            global_dir=".cursor/skills",
            project_probe=".cursor",
            global_probe=".cursor",
            features=_BASIC,
        ),
        AgentSpec(
            name="amp",
            display_name="Amp",
            project_dir=".agents/skills",
            global_dir=".config/agents/skills",
            project_probe=".agents",
            global_probe=".config/agents",
            features=_BASIC,
        ),
        AgentSpec(
            name="kilocode",
            display_name="Kilo Code",
            project_dir=".kilocode/skills",
            global_dir=".kilocode/skills",
            project_probe=".kilocode",
            global_probe=".kilocode",
            features=_BASIC,
        ),
        AgentSpec(
            name="roocode",
            display_name="Roo Code",
            project_dir=".roo/skills",
            global_dir=".roo/skills",
            project_probe=".roo",
            global_probe=".roo",
            features=_BASIC,
        ),
        AgentSpec(
            name="goose",
            display_name="Goose",
            project_dir=".goose/skills",
            global_dir=".config/goose/skills",
            project_probe=".goose",
            global_probe=".config/goose",
            features=_BASIC,
        ),
        AgentSpec(
            name="gemini",
            display_name="Gemini CLI",
            project_dir=".gemini/skills",
            global_dir=".gemini/skills",
            project_probe=".gemini",
            global_probe=".gemini",
            features=_BASIC,
        ),
        AgentSpec(
            name="antigravity",
            display_name="Antigravity",
            project_dir=".agent/skills",
            global_dir=".gemini/antigravity/skills",
            project_probe=".agent",
            global_probe=".gemini/antigravity",
            features=_BASIC,
        ),
        AgentSpec(
            name="copilot",
            display_name="GitHub Copilot",
            project_dir=".github/skills",
            global_dir=".copilot/skills",
            project_probe=".github/skills",
            global_probe=".copilot",
            features=_BASIC,
        ),
        AgentSpec(
            name="clawdbot",
            display_name="Clawdbot",
            project_dir="skills",
            global_dir=".clawdbot/skills",
            project_probe=".clawdbot",
            global_probe=".clawdbot",
            features=_BASIC,
        ),
        AgentSpec(
            name="droid",
            display_name="Droid",
            project_dir=".factory/skills",
            global_dir=".factory/skills",
            project_probe=".factory",
            global_probe=".factory",
            features=_BASIC,
        ),
        AgentSpec(
            name="windsurf",
            display_name="Windsurf",
            project_dir=".windsurf/skills",
            global_dir=".codeium/windsurf/skills",
            project_probe=".windsurf",
            global_probe=".codeium/windsurf",
            features=_BASIC,
        ),
    ]
}


def get_agent(name: str) -> AgentSpec:
    key = name.strip().lower().replace("_", "-").replace("-", "")
    for spec in AGENTS.values():
        if spec.name == key:
            return spec
    raise InvalidArgument(f"Unknown agent '{name}'. Available: {', '.join(AGENTS)}")


def skills_dir(agent: AgentSpec, scope: Scope, project_root: Path, home: Path | None = None) -> Path:
    if scope == Scope.GLOBAL:
        return (home or Path.home()) / agent.global_dir
    return project_root / agent.project_dir


def detect_agents(scope: Scope, project_root: Path, home: Path | None = None) -> list[AgentSpec]:
    """Agents whose configuration directory exists at ``scope``."""
    base = (home or Path.home()) if scope == Scope.GLOBAL else project_root
    detected = []
    for spec in AGENTS.values():
        probe = spec.global_probe if scope == Scope.GLOBAL else spec.project_probe
        if (base / probe).is_dir():
            detected.append(spec)
    return detected


def resolve_targets(
    agents: str | list[str] | None,
    scope: Scope,
    project_root: Path,
    default_agent: str | None = None,
    home: Path | None = None,
    output_dir: Path | None = None,
) -> list[InstallTarget]:
    """Expand the requested agents and scope into concrete install targets.

    ``agents`` is None (default agent), "all" (every detected agent, or the
    default agent when none is detected), or a list of agent names that may
    itself contain "all".
    """
    default = get_agent(default_agent or settings.default_agent)

    if output_dir is not None:
        return [
            InstallTarget(
                agent=default.name,
                scope=Scope.PROJECT,
                directory=Path(output_dir).expanduser().resolve(),
                feature_support=default.features,
            )
        ]

    if agents is None:
        requested = [default.name]
    elif isinstance(agents, str):
        requested = [agents]
    else:
        requested = list(agents) or [default.name]

    resolved: list[AgentSpec] = []
    for name in requested:
        if name.strip().lower() == ALL:
            detected = detect_agents(scope, project_root, home)
            if not detected:
                logger.info("No agents detected at %s scope; using %s", scope.value, default.name)
                detected = [default]
            resolved.extend(detected)
        else:
            resolved.append(get_agent(name))

    seen: set[str] = set()
    targets: list[InstallTarget] = []
    for spec in resolved:
        if spec.name in seen:
            continue
        seen.add(spec.name)
        targets.append(
            InstallTarget(
                agent=spec.name,
                scope=scope,
                directory=skills_dir(spec, scope, project_root, home),
                feature_support=spec.features,
            )
        )
    return targets
