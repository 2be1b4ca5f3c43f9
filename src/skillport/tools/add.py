"""The add pipeline: source -> fetch -> discover -> gate -> install."""

import asyncio
import logging
from pathlib import Path

from skillport.config import settings
from skillport.core.agents import resolve_targets
from skillport.core.cache import CacheManager
from skillport.core.discovery import discover
from skillport.core.fetcher import fetch
from skillport.core.gate import filter_candidates
from skillport.core.git import GitTransport
from skillport.core.installer import ConfirmFn, install_skill
from skillport.core.source import parse_source
from skillport.errors import NoCandidatesFound
from skillport.models import AddReport, OverwritePolicy, RejectedSkill, Scope

logger = logging.getLogger("skillport.add")


async def add_skills(
    source: str,
    names: list[str] | None = None,
    ref: str | None = None,
    agents: str | list[str] | None = None,
    scope: Scope = Scope.PROJECT,
    policy: OverwritePolicy | None = None,
    offline: bool | None = None,
    confirm: ConfirmFn | None = None,
    project_root: Path | None = None,
    output_dir: Path | None = None,
    list_only: bool = False,
    cache: CacheManager | None = None,
    transport: GitTransport | None = None,
) -> AddReport:
    """Install the skills found in ``source`` for the requested agents.

    Args:
        source: owner/repo shorthand, git URL, or local path
        names: Only install these skills (by manifest name)
        ref: Branch, tag or commit; overrides a ref embedded in the URL
        agents: Agent name, list of names, or "all" (default: configured agent)
        scope: Project-local or user-global skills directories
        policy: Overwrite policy (default: interactive when confirmation is on)
        offline: Serve remotes from the cache only
        confirm: Called for each conflicting skill under the interactive policy
        list_only: Stop after validation and report what would be installed

    Returns:
        AddReport with one outcome per (skill, target) pair.

    Raises:
        SkillportError subclasses for pipeline-level failures (bad source,
        unknown agent, fetch or resolution failure, nothing to install).
    """
    project_root = Path(project_root) if project_root else Path.cwd()
    if policy is None:
        policy = OverwritePolicy.INTERACTIVE if settings.confirm else OverwritePolicy.YES

    # Fail on bad agent names before touching the network
    targets = resolve_targets(agents, scope, project_root, settings.default_agent, output_dir=output_dir)

    descriptor = parse_source(source, ref=ref)
    tree = await fetch(descriptor, cache=cache, offline=offline, transport=transport)

    candidates = discover(tree.root)
    if not candidates:
        raise NoCandidatesFound(f"No skills found in {descriptor.display_name}")

    gate = filter_candidates(candidates, names=names, enabled=settings.validate_skills)
    if names and not gate.installable and not gate.rejected:
        raise NoCandidatesFound(
            f"None of the requested skills were found in {descriptor.display_name}: {', '.join(gate.unmatched)}",
            suggestions=gate.suggestions,
        )

    report = AddReport(
        source=descriptor.display_name,
        commit=tree.commit,
        from_cache=tree.from_cache,
        targets=targets,
        installable=[c.name for c in gate.installable],
        rejected=[
            RejectedSkill(
                name=r.candidate.name,
                path=str(r.candidate.root),
                errors=[d.message for d in r.diagnostics.errors],
            )
            for r in gate.rejected
        ],
        unmatched=gate.unmatched,
        suggestions=gate.suggestions,
    )

    if list_only or not gate.installable:
        return report

    pairs = [(candidate, target) for candidate in gate.installable for target in targets]
    if policy == OverwritePolicy.INTERACTIVE and confirm is not None:
        # Prompts must not interleave
        outcomes = [await install_skill(c, t, policy, confirm) for c, t in pairs]
    else:
        outcomes = await asyncio.gather(*(install_skill(c, t, policy, confirm) for c, t in pairs))
    report.outcomes = list(outcomes)

    done = sum(1 for o in report.outcomes if o.success)
    logger.info(
        "Installed %d of %d skill placement(s) from %s", done, len(report.outcomes), descriptor.display_name
    )
    return report
