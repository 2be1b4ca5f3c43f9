"""Fetcher: source descriptor + cache state -> materialized local tree."""

import logging
import shutil
from pathlib import Path

from skillport.core.cache import CacheManager
from skillport.core.git import GitTransport
from skillport.core.source import https_to_ssh, validate_subpath
from skillport.errors import AuthenticationFailed, OfflineCacheMiss, ResolutionError
from skillport.models import CacheEntry, LocalPath, MaterializedTree, RemoteRepo

logger = logging.getLogger("skillport.fetcher")


async def fetch(
    descriptor: RemoteRepo | LocalPath,
    cache: CacheManager | None = None,
    offline: bool | None = None,
    transport: GitTransport | None = None,
) -> MaterializedTree:
    """Materialize a source as a local directory tree.

    Pipeline for a remote:
    1. Resolve the bare mirror in the cache
    2. Update it unless offline (HTTPS auth failure retries once over SSH)
    3. Resolve the ref to a commit
    4. Reuse or create the checkout for that commit
    5. Narrow to the subpath, if any

    A local path is returned as-is: no caching, no copying.
    """
    if isinstance(descriptor, LocalPath):
        return MaterializedTree(root=descriptor.path)

    cache = cache or CacheManager()
    if offline is None:
        offline = cache.offline
    transport = transport or GitTransport()

    if offline and not cache.offline:
        cache = CacheManager(root=cache.root, offline=True)
    entry = cache.resolve_bare(descriptor.origin_url)

    if offline:
        if not entry.populated:
            raise OfflineCacheMiss(descriptor.origin_url)
        logger.info("Offline: using cached mirror for %s", descriptor.display_name)
    else:
        entry = await _update_mirror(entry, descriptor.origin_url, cache, transport)

    commit = await transport.resolve_ref(entry.path, descriptor.ref)

    checkout = cache.resolve_checkout(entry.key, commit)
    from_cache = checkout is not None
    if checkout is None:
        staged = cache.stage_checkout(entry.key, commit)
        try:
            await transport.materialize(entry.path, commit, staged)
            checkout = cache.record_checkout(entry.key, commit, staged)
        except BaseException:
            cache.discard(staged)
            raise

    root = checkout.path
    subpath = validate_subpath(descriptor.subpath)
    if subpath:
        root = checkout.path / subpath
        if not root.is_dir():
            raise ResolutionError(
                f"Subdirectory '{descriptor.subpath}' not found in {descriptor.display_name}"
            )

    logger.info(
        "Fetched %s at %s%s", descriptor.display_name, commit[:7], " (cached checkout)" if from_cache else ""
    )
    return MaterializedTree(root=root, checkout=checkout.path, commit=commit, from_cache=from_cache)


async def _update_mirror(
    entry: CacheEntry,
    origin: str,
    cache: CacheManager,
    transport: GitTransport,
) -> CacheEntry:
    """Refresh a mirror in a staging copy; promote only if something changed."""
    first_clone = not entry.populated
    staged = cache.stage_mirror(entry)
    try:
        before = {} if first_clone else await transport.list_refs(staged)
        try:
            await _sync(transport, staged, origin, first_clone)
        except AuthenticationFailed:
            ssh_url = https_to_ssh(origin)
            if ssh_url is None:
                raise
            logger.warning("HTTPS auth failed, retrying with SSH: %s", ssh_url)
            if first_clone:
                # Drop the partial clone before retrying
                shutil.rmtree(staged, ignore_errors=True)
                staged.mkdir(parents=True, exist_ok=True)
            await _sync(transport, staged, ssh_url, first_clone)

        if not first_clone and await transport.list_refs(staged) == before:
            logger.debug("Mirror %s unchanged", entry.key)
            cache.discard(staged)
            return entry
        return cache.promote_mirror(entry, staged)
    except BaseException:
        cache.discard(staged)
        raise


async def _sync(transport: GitTransport, staged: Path, url: str, first_clone: bool) -> None:
    if first_clone:
        await transport.clone_bare(url, staged)
    else:
        await transport.fetch(staged, url)
