"""Installer and inventory tests."""

import asyncio
import tempfile
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest

from skillport.core.agents import resolve_targets
from skillport.core.installer import install_skill, list_installed, remove_skill
from skillport.core.manifest import parse_manifest
from skillport.errors import InvalidArgument
from skillport.models import Candidate, OutcomeStatus, OverwritePolicy, Scope
from skillport.tools.agents import list_agents
from skillport.tools.inventory import list_skills
from skillport.tools.inventory import remove_skill as remove_from_agents


def make_candidate(directory: Path, name: str, body: str = "Version one.", frontmatter: str = "") -> Candidate:
    directory.mkdir(parents=True, exist_ok=True)
    (directory / "SKILL.md").write_text(
        f"---\nname: {name}\ndescription: Test skill {name}\n{frontmatter}---\n\n{body}\n"
    )
    manifest = parse_manifest(directory / "SKILL.md")
    return Candidate(root=directory, name=name, manifest=manifest)


def claude_target(project: Path):
    return resolve_targets(["claude"], Scope.PROJECT, project, "claude")[0]


def test_fresh_install_copies_tree_without_git():
    """Fresh install copies the tree minus .git."""
    with tempfile.TemporaryDirectory() as tmp:
        tmp = Path(tmp)
        candidate = make_candidate(tmp / "src" / "helper", "helper")
        (candidate.root / "references").mkdir()
        (candidate.root / "references" / "notes.md").write_text("notes")
        (candidate.root / ".git").mkdir()
        (candidate.root / ".git" / "HEAD").write_text("ref: refs/heads/main\n")

        target = claude_target(tmp / "project")
        outcome = asyncio.run(install_skill(candidate, target, OverwritePolicy.YES))

        dest = tmp / "project" / ".claude" / "skills" / "helper"
        assert outcome.status == OutcomeStatus.INSTALLED
        assert outcome.destination == dest
        assert (dest / "SKILL.md").read_text() == (candidate.root / "SKILL.md").read_text()
        assert (dest / "references" / "notes.md").read_text() == "notes"
        assert not (dest / ".git").exists()
        # No staging leftovers beside the destination
        assert [p.name for p in dest.parent.iterdir()] == ["helper"]
        print(f"  PASS: installed to {dest}")


def test_interactive_decline_leaves_existing_untouched():
    """Declined overwrite keeps the existing skill."""
    with tempfile.TemporaryDirectory() as tmp:
        tmp = Path(tmp)
        target = claude_target(tmp / "project")
        first = make_candidate(tmp / "v1" / "helper", "helper", body="Version one.")
        asyncio.run(install_skill(first, target, OverwritePolicy.YES))
        dest = target.directory / "helper"
        before = (dest / "SKILL.md").read_bytes()

        second = make_candidate(tmp / "v2" / "helper", "helper", body="Version two.")
        asked = []

        def decline(candidate, t):
            asked.append(candidate.name)
            return False

        outcome = asyncio.run(install_skill(second, target, OverwritePolicy.INTERACTIVE, confirm=decline))
        assert outcome.status == OutcomeStatus.SKIPPED
        assert outcome.reason == "already_exists"
        assert asked == ["helper"]
        assert (dest / "SKILL.md").read_bytes() == before

        # No callback at all behaves like a decline
        outcome = asyncio.run(install_skill(second, target, OverwritePolicy.INTERACTIVE))
        assert outcome.status == OutcomeStatus.SKIPPED
        assert (dest / "SKILL.md").read_bytes() == before
        print("  PASS: declined overwrite leaves directory byte-identical")


def test_overwrite_by_policy_and_by_confirmation():
    """Overwrite replaces the whole directory."""
    with tempfile.TemporaryDirectory() as tmp:
        tmp = Path(tmp)
        target = claude_target(tmp / "project")
        dest = target.directory / "helper"
        asyncio.run(install_skill(make_candidate(tmp / "v1" / "helper", "helper"), target, OverwritePolicy.YES))
        (dest / "stale.txt").write_text("old file")

        v2 = make_candidate(tmp / "v2" / "helper", "helper", body="Version two.")
        outcome = asyncio.run(install_skill(v2, target, OverwritePolicy.YES))
        assert outcome.status == OutcomeStatus.OVERWRITTEN
        assert "Version two." in (dest / "SKILL.md").read_text()
        assert not (dest / "stale.txt").exists()

        async def approve(candidate, t):
            return True

        v3 = make_candidate(tmp / "v3" / "helper", "helper", body="Version three.")
        outcome = asyncio.run(install_skill(v3, target, OverwritePolicy.INTERACTIVE, confirm=approve))
        assert outcome.status == OutcomeStatus.OVERWRITTEN
        assert "Version three." in (dest / "SKILL.md").read_text()
        print("  PASS: overwrite replaces the whole directory")


def test_failed_copy_keeps_previous_install():
    """A failed copy keeps the previous install."""
    with tempfile.TemporaryDirectory() as tmp:
        tmp = Path(tmp)
        target = claude_target(tmp / "project")
        dest = target.directory / "helper"
        candidate = make_candidate(tmp / "v1" / "helper", "helper")
        asyncio.run(install_skill(candidate, target, OverwritePolicy.YES))
        before = (dest / "SKILL.md").read_bytes()

        vanished = Candidate(root=tmp / "gone" / "helper", name="helper", manifest=candidate.manifest)
        outcome = asyncio.run(install_skill(vanished, target, OverwritePolicy.YES))
        assert outcome.status == OutcomeStatus.FAILED
        assert outcome.error
        assert (dest / "SKILL.md").read_bytes() == before
        assert [p.name for p in target.directory.iterdir()] == ["helper"]
        print(f"  PASS: failure reported ({outcome.error}), prior install intact")


def test_compatibility_warnings_do_not_block():
    """Unsupported features warn but still install."""
    with tempfile.TemporaryDirectory() as tmp:
        tmp = Path(tmp)
        candidate = make_candidate(
            tmp / "src" / "forker", "forker", frontmatter="context: fork\nhooks:\n  PreToolUse: []\n"
        )
        codex = resolve_targets(["codex"], Scope.PROJECT, tmp / "project", "claude")[0]
        outcome = asyncio.run(install_skill(candidate, codex, OverwritePolicy.YES))
        assert outcome.status == OutcomeStatus.INSTALLED
        assert len(outcome.warnings) == 2
        assert any("context: fork" in w for w in outcome.warnings)

        claude = claude_target(tmp / "project")
        outcome = asyncio.run(install_skill(candidate, claude, OverwritePolicy.YES))
        assert outcome.warnings == []
        print(f"  PASS: warnings {outcome.warnings} for claude, 2 for codex")


def test_concurrent_installs_of_same_destination():
    """Concurrent installs to one destination are serialized."""
    with tempfile.TemporaryDirectory() as tmp:
        tmp = Path(tmp)
        target = claude_target(tmp / "project")
        a = make_candidate(tmp / "a" / "helper", "helper", body="From a.")
        b = make_candidate(tmp / "b" / "helper", "helper", body="From b.")

        async def run():
            return await asyncio.gather(
                install_skill(a, target, OverwritePolicy.YES),
                install_skill(b, target, OverwritePolicy.YES),
            )

        outcomes = asyncio.run(run())
        statuses = sorted(o.status.value for o in outcomes)
        assert statuses == ["installed", "overwritten"]
        content = (target.directory / "helper" / "SKILL.md").read_text()
        assert "From a." in content or "From b." in content
        print("  PASS: writers serialized per destination")


def test_list_and_remove_installed():
    """Installed skills can be listed and removed."""
    with tempfile.TemporaryDirectory() as tmp:
        tmp = Path(tmp)
        project = tmp / "project"
        target = claude_target(project)
        for name in ("one", "two"):
            asyncio.run(install_skill(make_candidate(tmp / "src" / name, name), target, OverwritePolicy.YES))

        installed = list_installed("claude", Scope.PROJECT, project)
        assert [s.name for s in installed] == ["one", "two"]
        assert installed[0].description == "Test skill one"

        listing = list_skills(agents=["claude"], project_root=project)
        assert listing["total"] == 2

        assert asyncio.run(remove_skill("one", target)) is True
        assert asyncio.run(remove_skill("one", target)) is False
        with pytest.raises(InvalidArgument):
            asyncio.run(remove_skill("../escape", target))

        result = asyncio.run(remove_from_agents("two", agents=["claude", "codex"], project_root=project))
        assert result["removed_from"] == ["claude"]
        assert result["not_installed"] == ["codex"]
        assert list_installed("claude", Scope.PROJECT, project) == []
        print("  PASS: list and remove")


def test_list_agents_reports_detection_and_counts():
    """Agent listing shows detection, counts and features."""
    with tempfile.TemporaryDirectory() as tmp:
        tmp = Path(tmp)
        project, home = tmp / "project", tmp / "home"
        home.mkdir()
        target = claude_target(project)
        asyncio.run(install_skill(make_candidate(tmp / "src" / "one", "one"), target, OverwritePolicy.YES))

        agents = {a["name"]: a for a in list_agents(project_root=project, home=home)}
        assert len(agents) == 14
        assert agents["claude"]["project"]["detected"] is True
        assert agents["claude"]["project"]["skills"] == 1
        assert agents["claude"]["global"]["detected"] is False
        assert agents["cursor"]["project"]["detected"] is False
        assert agents["claude"]["features"]["hooks"] is True
        assert agents["codex"]["features"]["hooks"] is False
        print("  PASS: agent listing")
