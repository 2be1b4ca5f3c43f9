"""Source resolution: turn a user-supplied string into a source descriptor."""

import hashlib
import logging
import re
from pathlib import Path, PurePosixPath
from urllib.parse import urlsplit

from skillport.config import settings
from skillport.errors import InvalidSource
from skillport.models import LocalPath, RemoteRepo

logger = logging.getLogger("skillport.source")

_NAME_RE = re.compile(r"^[A-Za-z0-9._-]+$")
_SCP_RE = re.compile(r"^(?P<user>[A-Za-z0-9._-]+)@(?P<host>[A-Za-z0-9.-]+):(?P<path>[^/].*)$")
_LOCAL_PREFIXES = ("/", "./", "../", "~")

EXPECTED_FORMATS = (
    "Expected: owner/repo, https://host/owner/repo[/tree/<ref>/<path>], "
    "git@host:owner/repo.git, or an existing local path"
)


def parse_source(source: str, ref: str | None = None) -> RemoteRepo | LocalPath:
    """Parse a source string into a RemoteRepo or LocalPath descriptor.

    Recognized forms, in order:
        owner/repo                                  -> https://<default_host>/owner/repo.git
        https://host/owner/repo/tree/<ref>/<path>   -> ref + subpath split out
        git@host:owner/repo.git, ssh://...          -> SSH origin
        file:///path/to/repo.git                    -> local git transport
        anything that exists on disk                -> LocalPath

    An explicit ``ref`` overrides a ref embedded in the URL.
    """
    raw = source.strip()
    if not raw:
        raise InvalidSource(source, "empty source")

    descriptor = _parse(raw)
    if ref and isinstance(descriptor, RemoteRepo):
        descriptor = descriptor.model_copy(update={"ref": ref})
    logger.debug("Parsed source '%s' -> %s", source, descriptor)
    return descriptor


def _parse(raw: str) -> RemoteRepo | LocalPath:
    # Explicit path prefixes can never be shorthand or URLs
    if raw.startswith(_LOCAL_PREFIXES) or raw in (".", ".."):
        return _parse_local(raw, strict=True)

    if _is_shorthand(raw):
        return RemoteRepo(origin_url=f"https://{settings.default_host}/{raw.removesuffix('.git')}.git")

    if raw.startswith(("http://", "https://")):
        return _parse_http(raw)

    if raw.startswith("ssh://"):
        return _parse_ssh_url(raw)

    if raw.startswith("file://"):
        return RemoteRepo(origin_url=raw)

    scp = _SCP_RE.match(raw)
    if scp:
        path = scp.group("path").strip("/").removesuffix(".git")
        if "/" not in path:
            raise InvalidSource(raw, "SSH URL must be in format user@host:owner/repo.git")
        return RemoteRepo(origin_url=f"{scp.group('user')}@{scp.group('host')}:{path}.git")

    return _parse_local(raw, strict=False)


def _is_shorthand(raw: str) -> bool:
    parts = raw.split("/")
    if len(parts) != 2:
        return False
    return all(_NAME_RE.match(p) and p not in (".", "..") for p in parts)


def _parse_http(raw: str) -> RemoteRepo:
    parts = urlsplit(raw)
    if not parts.hostname:
        raise InvalidSource(raw, "URL must have a host")

    path = parts.path.strip("/")
    ref = None
    subpath = None

    # GitHub uses /tree/<ref>/..., GitLab uses /-/tree/<ref>/...
    match = re.search(r"(?:/-)?/tree/", f"/{path}")
    if match:
        repo_path = f"/{path}"[: match.start()].strip("/")
        rest = f"/{path}"[match.end():]
        ref, _, sub = rest.partition("/")
        if not ref:
            raise InvalidSource(raw, "missing ref after /tree/")
        subpath = _clean_subpath(raw, sub)
    else:
        repo_path = path

    repo_path = repo_path.removesuffix(".git")
    if repo_path.count("/") < 1:
        raise InvalidSource(raw, "URL must include owner and repository")

    host = parts.hostname.lower()
    if parts.port:
        host = f"{host}:{parts.port}"
    return RemoteRepo(
        origin_url=f"{parts.scheme}://{host}/{repo_path}.git",
        ref=ref,
        subpath=subpath,
    )


def _parse_ssh_url(raw: str) -> RemoteRepo:
    parts = urlsplit(raw)
    if not parts.hostname:
        raise InvalidSource(raw, "SSH URL must have a host")
    path = parts.path.strip("/").removesuffix(".git")
    if "/" not in path:
        raise InvalidSource(raw, "SSH URL must include owner and repository")
    user = parts.username or "git"
    if parts.port:
        return RemoteRepo(origin_url=f"ssh://{user}@{parts.hostname}:{parts.port}/{path}.git")
    return RemoteRepo(origin_url=f"{user}@{parts.hostname}:{path}.git")


def _parse_local(raw: str, strict: bool) -> LocalPath:
    path = Path(raw).expanduser()
    if path.exists():
        return LocalPath(path=path.resolve())
    if strict:
        raise InvalidSource(raw, "path does not exist")
    raise InvalidSource(raw, EXPECTED_FORMATS)


def _clean_subpath(raw: str, subpath: str) -> str | None:
    """Normalize an in-repo subpath; reject absolute paths and '..' traversal."""
    subpath = subpath.strip()
    if not subpath:
        return None
    pure = PurePosixPath(subpath)
    if pure.is_absolute() or ".." in pure.parts:
        raise InvalidSource(raw, f"subpath '{subpath}' must stay inside the repository")
    cleaned = "/".join(p for p in pure.parts if p not in ("", "."))
    return cleaned or None


def validate_subpath(subpath: str | None) -> str | None:
    """Public form of the subpath check, for descriptors built by hand."""
    if subpath is None:
        return None
    return _clean_subpath(subpath, subpath)


# ---------------------------------------------------------------------------
# Origin normalization
# ---------------------------------------------------------------------------


def canonical_origin(url: str) -> str:
    """Scheme-less ``host/owner/repo`` form so HTTPS and SSH remotes collide."""
    url = url.strip()
    if url.startswith("file://"):
        host, path = "local", url[len("file://"):]
    elif "://" in url:
        parts = urlsplit(url)
        host, path = (parts.hostname or ""), parts.path
    else:
        scp = _SCP_RE.match(url)
        if scp:
            host, path = scp.group("host"), scp.group("path")
        else:
            host, path = "local", url
    path = path.strip("/").removesuffix(".git").strip("/")
    return f"{host}/{path}".lower()


def cache_key(url: str) -> str:
    """Deterministic directory name for a remote: readable slug + short digest."""
    canonical = canonical_origin(url)
    slug = re.sub(r"[^a-z0-9._-]+", "-", canonical).strip("-")[:80]
    digest = hashlib.sha256(canonical.encode()).hexdigest()[:8]
    return f"{slug}-{digest}"


def https_to_ssh(url: str) -> str | None:
    """SSH form of an HTTPS origin, or None when the origin is not HTTPS."""
    if not url.startswith("https://"):
        return None
    parts = urlsplit(url)
    path = parts.path.strip("/").removesuffix(".git")
    if not parts.hostname or "/" not in path:
        return None
    return f"git@{parts.hostname}:{path}.git"
