"""Git transport: thin async wrapper over the git CLI."""

import asyncio
import io
import logging
import os
import tarfile
from pathlib import Path

from skillport.config import settings
from skillport.errors import AuthenticationFailed, NetworkError, RepositoryNotFound, ResolutionError

logger = logging.getLogger("skillport.git")

_AUTH_MARKERS = (
    "authentication failed",
    "authentication required",
    "could not read username",
    "could not read password",
    "terminal prompts disabled",
    "permission denied (publickey",
    "invalid username or password",
    "the requested url returned error: 401",
    "the requested url returned error: 403",
)

_NOT_FOUND_MARKERS = (
    "repository not found",
    "does not appear to be a git repository",
    "the requested url returned error: 404",
)

_NETWORK_MARKERS = (
    "could not resolve host",
    "could not resolve hostname",
    "connection refused",
    "connection timed out",
    "operation timed out",
    "network is unreachable",
    "failed to connect",
    "connection reset",
)


def classify_failure(stderr: str, url: str) -> NetworkError:
    """Map git's stderr to the error kind the fetcher branches on."""
    text = stderr.lower()
    message = stderr.strip() or "git command failed"
    if any(marker in text for marker in _AUTH_MARKERS):
        return AuthenticationFailed(f"Authentication failed for {url}: {message}", url=url)
    if any(marker in text for marker in _NOT_FOUND_MARKERS):
        return RepositoryNotFound(f"Repository not found: {url}", url=url)
    if any(marker in text for marker in _NETWORK_MARKERS):
        return NetworkError(f"Network error for {url}: {message}", url=url)
    return NetworkError(f"Git error for {url}: {message}", url=url)


class GitTransport:
    """Runs git as a subprocess; every call is a single git invocation."""

    def __init__(self, executable: str | None = None):
        self.executable = executable or settings.git_executable

    async def _run(self, *args: str, cwd: Path | None = None) -> tuple[int, bytes, str]:
        env = dict(os.environ)
        env["GIT_TERMINAL_PROMPT"] = "0"
        env.setdefault("GIT_SSH_COMMAND", "ssh -o BatchMode=yes")
        try:
            process = await asyncio.create_subprocess_exec(
                self.executable,
                *args,
                cwd=str(cwd) if cwd else None,
                env=env,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise NetworkError(f"git executable not found: {self.executable}") from e
        stdout, stderr = await process.communicate()
        return process.returncode, stdout, stderr.decode(errors="replace")

    async def clone_bare(self, url: str, dest: Path) -> None:
        """Clone ``url`` as a bare repository into the (empty) ``dest``."""
        logger.info("Cloning %s", url)
        code, _, stderr = await self._run("clone", "--bare", "--quiet", url, str(dest))
        if code != 0:
            raise classify_failure(stderr, url)

    async def fetch(self, mirror: Path, url: str) -> None:
        """Bring every branch and tag of ``mirror`` up to date with ``url``."""
        logger.info("Fetching %s", url)
        code, _, stderr = await self._run(
            "--git-dir",
            str(mirror),
            "fetch",
            "--quiet",
            "--prune",
            "--tags",
            "--force",
            url,
            "+refs/heads/*:refs/heads/*",
        )
        if code != 0:
            raise classify_failure(stderr, url)

    async def list_refs(self, mirror: Path) -> dict[str, str]:
        """Map of ref name to object id, used to detect upstream changes."""
        code, stdout, stderr = await self._run(
            "--git-dir", str(mirror), "for-each-ref", "--format=%(objectname) %(refname)"
        )
        if code != 0:
            raise NetworkError(f"Cannot read refs of {mirror}: {stderr.strip()}")
        refs: dict[str, str] = {}
        for line in stdout.decode().splitlines():
            oid, _, name = line.partition(" ")
            if name:
                refs[name] = oid
        return refs

    async def resolve_ref(self, mirror: Path, ref: str | None) -> str:
        """Resolve a branch, tag, commit id or the default branch to a commit id."""
        if ref is None:
            candidates = ["HEAD", "refs/heads/main", "refs/heads/master"]
        else:
            candidates = [f"refs/heads/{ref}", f"refs/tags/{ref}", ref]

        for candidate in candidates:
            code, stdout, _ = await self._run(
                "--git-dir", str(mirror), "rev-parse", "--verify", "--quiet", f"{candidate}^{{commit}}"
            )
            if code == 0:
                commit = stdout.decode().strip()
                logger.debug("Resolved %s -> %s", candidate, commit)
                return commit

        if ref is None:
            raise ResolutionError("Repository has no default branch")
        raise ResolutionError(f"Reference '{ref}' not found")

    async def materialize(self, mirror: Path, commit: str, dest: Path) -> None:
        """Write the tree of ``commit`` into ``dest`` (no .git directory)."""
        code, stdout, stderr = await self._run("--git-dir", str(mirror), "archive", "--format=tar", commit)
        if code != 0:
            raise ResolutionError(f"Cannot materialize commit {commit}: {stderr.strip()}")
        await asyncio.to_thread(_extract_tar, stdout, dest)


def _extract_tar(data: bytes, dest: Path) -> None:
    dest.mkdir(parents=True, exist_ok=True)
    with tarfile.open(fileobj=io.BytesIO(data)) as tf:
        tf.extractall(dest, filter="data")
