"""Error taxonomy for the install pipeline.

Pipeline-level errors (source, fetch, ref resolution) abort a run before any
installation. Batch-level failures (validation, per-target copy) are recorded
as outcomes instead of being raised past the batch.
"""

from pathlib import Path


class SkillportError(Exception):
    """Base class; ``exit_code`` is the process exit code for the CLI layer."""

    exit_code: int = 3


class InvalidSource(SkillportError):
    exit_code = 2

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Invalid source '{source}': {reason}")


class InvalidArgument(SkillportError):
    exit_code = 2


class ResolutionError(SkillportError):
    """A ref or subpath that does not exist in the fetched repository."""

    exit_code = 2


class NetworkError(SkillportError):
    exit_code = 3

    def __init__(self, message: str, url: str = ""):
        self.url = url
        super().__init__(message)


class AuthenticationFailed(NetworkError):
    pass


class RepositoryNotFound(NetworkError):
    pass


class OfflineCacheMiss(SkillportError):
    exit_code = 3

    def __init__(self, origin: str):
        self.origin = origin
        super().__init__(f"Repository not in cache and offline mode is enabled: {origin}")


class NoCandidatesFound(SkillportError):
    exit_code = 1

    def __init__(self, message: str, suggestions: dict[str, list[str]] | None = None):
        self.suggestions = suggestions or {}
        super().__init__(message)


class ManifestError(SkillportError):
    exit_code = 2

    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class InstallIoError(SkillportError):
    """Copy failure for one (skill, target) pair; recorded as a FAILED outcome."""

    exit_code = 3


def exit_code_for(exc: BaseException) -> int:
    """Map an exception raised by the pipeline to a CLI exit code."""
    if isinstance(exc, SkillportError):
        return exc.exit_code
    return 3
