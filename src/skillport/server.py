"""skillport MCP server.

Provides 8 tools for installing agent skills from git repositories:
- add_skills: Fetch a repo (cached), discover and validate skills, install them for agents
- list_skills: Skills installed for one or more agents
- remove_skill: Delete an installed skill
- list_agents: Known agents, where they keep skills, which ones are detected
- cache_info: Location and size of the git cache
- clean_cache: Evict old checkouts or wipe the cache
- lint_skills: Validate skills in a local directory without installing them
- read_properties: Front matter of skills in a local directory as JSON
"""

import json
import logging

from mcp.server.fastmcp import FastMCP

from skillport.errors import SkillportError, exit_code_for
from skillport.models import OverwritePolicy, Scope

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger("skillport.server")

mcp = FastMCP(
    "skillport",
    instructions=(
        "skillport installs agent skills (directories with a SKILL.md) from git repositories. "
        "Use add_skills with list_only=true to see what a repository offers, then add_skills "
        "with the skill names you want. Repositories are cached, so repeated installs are fast "
        "and work offline with offline=true."
    ),
)


def _split(value: str) -> list[str] | None:
    items = [v.strip() for v in value.split(",") if v.strip()]
    return items or None


def _error(exc: Exception) -> str:
    return json.dumps(
        {"error": str(exc), "kind": type(exc).__name__, "exit_code": exit_code_for(exc)},
        indent=2,
    )


@mcp.tool()
async def add_skills(
    source: str,
    skills: str = "",
    ref: str = "",
    agents: str = "",
    scope: str = "project",
    overwrite: bool = False,
    offline: bool = False,
    list_only: bool = False,
    project_root: str = "",
) -> str:
    """Install skills from a git repository or local directory.

    Pipeline: resolve source -> fetch into cache -> discover SKILL.md -> validate -> install.
    Existing skills are skipped unless overwrite is true.

    Args:
        source: owner/repo, https URL (may include /tree/<ref>/<path>), git@host:owner/repo, or local path
        skills: Comma-separated skill names to install (default: all valid skills)
        ref: Branch, tag or commit (overrides a ref in the URL)
        agents: Comma-separated agent names or "all" (default: configured agent)
        scope: "project" or "global"
        overwrite: Replace skills that are already installed
        offline: Use only the local cache
        list_only: Only report discovered and rejected skills
        project_root: Project directory for project scope (default: server working directory)
    """
    from skillport.tools.add import add_skills as _add

    try:
        report = await _add(
            source=source,
            names=_split(skills),
            ref=ref or None,
            agents=_split(agents),
            scope=Scope(scope),
            policy=OverwritePolicy.YES if overwrite else OverwritePolicy.INTERACTIVE,
            offline=offline or None,
            project_root=project_root or None,
            list_only=list_only,
        )
    except (SkillportError, ValueError, OSError) as e:
        logger.error("add_skills failed: %s", e)
        return _error(e)

    data = report.model_dump(mode="json")
    data["exit_code"] = report.exit_code
    return json.dumps(data, indent=2)


@mcp.tool()
async def list_skills(agents: str = "", scope: str = "project", project_root: str = "") -> str:
    """List installed skills.

    Args:
        agents: Comma-separated agent names or "all" (default: configured agent)
        scope: "project" or "global"
        project_root: Project directory for project scope
    """
    from skillport.tools.inventory import list_skills as _list

    try:
        result = _list(agents=_split(agents), scope=Scope(scope), project_root=project_root or None)
    except (SkillportError, ValueError, OSError) as e:
        return _error(e)
    return json.dumps(result, indent=2)


@mcp.tool()
async def remove_skill(name: str, agents: str = "", scope: str = "project", project_root: str = "") -> str:
    """Remove an installed skill.

    Args:
        name: Skill name (directory name under the agent's skills directory)
        agents: Comma-separated agent names or "all" (default: configured agent)
        scope: "project" or "global"
        project_root: Project directory for project scope
    """
    from skillport.tools.inventory import remove_skill as _remove

    try:
        result = await _remove(name=name, agents=_split(agents), scope=Scope(scope), project_root=project_root or None)
    except (SkillportError, ValueError, OSError) as e:
        return _error(e)
    return json.dumps(result, indent=2)


@mcp.tool()
async def list_agents(project_root: str = "") -> str:
    """List supported agents, their skills directories, detection status and features."""
    from skillport.tools.agents import list_agents as _agents

    return json.dumps(_agents(project_root=project_root or None), indent=2)


@mcp.tool()
async def cache_info() -> str:
    """Show the git cache location, number of mirrors and checkouts, and size."""
    from skillport.tools.cache import cache_info as _info

    try:
        result = _info()
    except OSError as e:
        return _error(e)
    return json.dumps(result, indent=2)


@mcp.tool()
async def clean_cache(all: bool = False, max_age_days: int = -1) -> str:
    """Remove checkouts unused for max_age_days, or everything with all=true.

    Args:
        all: Remove mirrors too
        max_age_days: Age limit in days (default: configured checkout_max_age_days)
    """
    from skillport.tools.cache import clean_cache as _clean

    try:
        result = _clean(all=all, max_age_days=None if max_age_days < 0 else max_age_days)
    except OSError as e:
        return _error(e)
    return json.dumps(result, indent=2)


@mcp.tool()
async def lint_skills(path: str, strict: bool = False, ignore: str = "") -> str:
    """Validate skills in a local directory against the SKILL.md rules.

    Args:
        path: Skill directory, SKILL.md file, or a tree holding several skills
        strict: Treat warnings as failures
        ignore: Comma-separated directory globs to skip (default: configured patterns)
    """
    from skillport.tools.lint import lint_skills as _lint

    try:
        result = _lint(path, strict=strict or None, ignore_patterns=_split(ignore))
    except (SkillportError, ValueError, OSError) as e:
        return _error(e)
    return json.dumps(result, indent=2)


@mcp.tool()
async def read_properties(path: str, ignore: str = "") -> str:
    """Read name, description, license, compatibility, metadata and allowed tools of local skills.

    Args:
        path: Skill directory, SKILL.md file, or a tree holding several skills
        ignore: Comma-separated directory globs to skip (default: configured patterns)
    """
    from skillport.tools.lint import read_properties as _read

    try:
        result = _read(path, ignore_patterns=_split(ignore))
    except (SkillportError, ValueError, OSError) as e:
        return _error(e)
    return json.dumps(result, indent=2)


def main():
    """Entry point for the MCP server."""
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
