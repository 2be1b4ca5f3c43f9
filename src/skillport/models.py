"""Data models for skillport."""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

# Feature identifiers shared by manifests and the agent capability table
CONTEXT_FORK = "context_fork"
HOOKS = "hooks"
ALLOWED_TOOLS = "allowed_tools"
SCRIPTS = "scripts"

FEATURE_LABELS: dict[str, str] = {
    CONTEXT_FORK: "context: fork",
    HOOKS: "hooks",
    ALLOWED_TOOLS: "allowed-tools",
    SCRIPTS: "scripts",
}


class Scope(str, Enum):
    PROJECT = "project"
    GLOBAL = "global"


class OverwritePolicy(str, Enum):
    """How an installer treats a destination that already exists."""

    YES = "yes"  # overwrite without asking
    INTERACTIVE = "interactive"  # ask per conflicting skill


class OutcomeStatus(str, Enum):
    INSTALLED = "installed"
    SKIPPED = "skipped"
    OVERWRITTEN = "overwritten"
    FAILED = "failed"


class RemoteRepo(BaseModel):
    """A git remote, optionally pinned to a ref and narrowed to a subpath."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["remote"] = "remote"
    origin_url: str
    ref: str | None = None
    subpath: str | None = None

    @property
    def display_name(self) -> str:
        url = self.origin_url.removesuffix(".git")
        if "://" in url:
            rest = url.split("://", 1)[1]
            return rest.split("/", 1)[1] if "/" in rest else rest
        if "@" in url and ":" in url:
            return url.split(":", 1)[1]
        return url


class LocalPath(BaseModel):
    """A directory (or SKILL.md file) on the local filesystem."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["local"] = "local"
    path: Path

    @property
    def display_name(self) -> str:
        return str(self.path)


class CacheEntry(BaseModel):
    """A bare mirror of one remote, shared by every ref of that remote."""

    key: str
    origin: str
    path: Path
    last_fetched: datetime | None = None

    @property
    def populated(self) -> bool:
        return self.path.is_dir() and any(self.path.iterdir())


class CheckoutEntry(BaseModel):
    """A materialized working tree of one commit."""

    key: str
    commit: str
    path: Path
    created_at: datetime
    last_access: datetime


class MaterializedTree(BaseModel):
    """The local directory handed to discovery."""

    root: Path
    checkout: Path | None = None
    commit: str | None = None
    from_cache: bool = False


class FeatureSet(BaseModel):
    """Optional skill features an agent understands."""

    model_config = ConfigDict(frozen=True)

    context_fork: bool = False
    hooks: bool = False
    allowed_tools: bool = False
    scripts: bool = True

    def supported(self) -> set[str]:
        return {name for name, enabled in self.model_dump().items() if enabled}

    def missing(self, required: set[str]) -> list[str]:
        return sorted(required - self.supported())


class Manifest(BaseModel):
    """Parsed front matter and body of a SKILL.md file."""

    path: Path
    name: str
    description: str = ""
    license: str | None = None
    compatibility: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    allowed_tools: str | None = None
    context: str | None = None
    hooks: Any = None
    body: str = ""
    body_start_line: int = 1

    @property
    def root(self) -> Path:
        return self.path.parent

    def required_features(self) -> set[str]:
        """Features the skill relies on that not every agent supports."""
        required: set[str] = set()
        if (self.context or "").strip().lower() == "fork":
            required.add(CONTEXT_FORK)
        if self.hooks:
            required.add(HOOKS)
        if self.allowed_tools:
            required.add(ALLOWED_TOOLS)
        if (self.root / "scripts").is_dir():
            required.add(SCRIPTS)
        return required


class Candidate(BaseModel):
    """A discovered skill, before validation."""

    root: Path
    name: str
    manifest: Manifest


class Diagnostic(BaseModel):
    rule: str
    message: str
    path: str = ""
    line: int | None = None
    fix_hint: str | None = None


class Diagnostics(BaseModel):
    errors: list[Diagnostic] = Field(default_factory=list)
    warnings: list[Diagnostic] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class RejectedCandidate(BaseModel):
    candidate: Candidate
    diagnostics: Diagnostics


class GateResult(BaseModel):
    """Partition of discovered candidates into installable and rejected."""

    installable: list[Candidate] = Field(default_factory=list)
    rejected: list[RejectedCandidate] = Field(default_factory=list)
    unmatched: list[str] = Field(default_factory=list)
    suggestions: dict[str, list[str]] = Field(default_factory=dict)


class InstallTarget(BaseModel):
    """One destination skills directory for one agent at one scope."""

    model_config = ConfigDict(frozen=True)

    agent: str
    scope: Scope
    directory: Path
    feature_support: FeatureSet = Field(default_factory=FeatureSet)


class InstallationOutcome(BaseModel):
    """Result of installing one candidate into one target."""

    skill_name: str
    agent: str
    scope: Scope
    destination: Path
    status: OutcomeStatus
    reason: str | None = None  # set for SKIPPED
    error: str | None = None  # set for FAILED
    warnings: list[str] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status in (OutcomeStatus.INSTALLED, OutcomeStatus.OVERWRITTEN)


class RejectedSkill(BaseModel):
    name: str
    path: str
    errors: list[str] = Field(default_factory=list)


class AddReport(BaseModel):
    """Structured result of one add_skills run."""

    source: str
    commit: str | None = None
    from_cache: bool = False
    targets: list[InstallTarget] = Field(default_factory=list)
    installable: list[str] = Field(default_factory=list)
    rejected: list[RejectedSkill] = Field(default_factory=list)
    unmatched: list[str] = Field(default_factory=list)
    suggestions: dict[str, list[str]] = Field(default_factory=dict)
    outcomes: list[InstallationOutcome] = Field(default_factory=list)

    @property
    def exit_code(self) -> int:
        if not self.installable:
            return 1
        if self.outcomes and all(o.status == OutcomeStatus.FAILED for o in self.outcomes):
            return 3
        return 0


class InstalledSkill(BaseModel):
    """A skill found in an agent's skills directory."""

    name: str
    description: str = ""
    path: Path
    agent: str
    scope: Scope
