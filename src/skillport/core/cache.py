"""Two-tier on-disk git cache: bare mirrors and commit-keyed checkouts.

Layout under the cache root:

    mirrors/<key>               symlink to the current version in mirrors/.store/
    mirrors/<key>.json          CacheEntry metadata (origin, last_fetched)
    checkouts/<key>-<commit>    symlink to the current version in checkouts/.store/
    checkouts/<key>-<commit>.json  CheckoutEntry metadata (last_access)
    <tier>/.store/<name>-<id>/  one directory per promoted version
    tmp/                        staging area for both tiers

Nothing is mutated in place: new content is staged under tmp/, moved into the
store and published by renaming a fresh symlink over the entry name. The
entry name always resolves to a complete version, old or new.
"""

import logging
import os
import shutil
import tempfile
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path

from skillport.config import settings
from skillport.core.source import cache_key
from skillport.errors import OfflineCacheMiss
from skillport.models import CacheEntry, CheckoutEntry

logger = logging.getLogger("skillport.cache")

_COMMIT_PREFIX = 16
_STORE = ".store"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _write_json_atomic(path: Path, payload: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def _dir_size(path: Path) -> int:
    total = 0
    for dirpath, _, filenames in os.walk(path):
        for name in filenames:
            try:
                total += (Path(dirpath) / name).lstat().st_size
            except OSError:
                continue
    return total


class CacheManager:
    """Owns every write under the cache root."""

    def __init__(self, root: Path | None = None, offline: bool | None = None):
        self.root = Path(root) if root is not None else settings.cache_path
        self.offline = settings.offline if offline is None else offline

    @property
    def mirrors_dir(self) -> Path:
        return self.root / "mirrors"

    @property
    def checkouts_dir(self) -> Path:
        return self.root / "checkouts"

    @property
    def tmp_dir(self) -> Path:
        return self.root / "tmp"

    # ------------------------------------------------------------------
    # Bare mirrors
    # ------------------------------------------------------------------

    def resolve_bare(self, origin: str) -> CacheEntry:
        """Return the mirror entry for ``origin``, creating a placeholder if new.

        Raises OfflineCacheMiss when offline and nothing is cached.
        """
        key = cache_key(origin)
        path = self.mirrors_dir / key
        meta = self.mirrors_dir / f"{key}.json"

        entry = None
        if meta.exists():
            try:
                entry = CacheEntry.model_validate_json(meta.read_text(encoding="utf-8"))
                entry = entry.model_copy(update={"path": path})
            except ValueError as e:
                logger.warning("Ignoring unreadable mirror metadata %s: %s", meta, e)
        if entry is None:
            entry = CacheEntry(key=key, origin=origin, path=path)

        if self.offline and not entry.populated:
            raise OfflineCacheMiss(origin)

        logger.debug("Mirror %s: %s", "hit" if entry.populated else "miss", key)
        return entry

    def stage_mirror(self, entry: CacheEntry) -> Path:
        """Fresh staging location for a mirror update.

        Holds a copy of the current mirror, or is empty for a first clone.
        """
        staged = self._stage(f"mirror-{entry.key}-")
        if entry.populated:
            shutil.copytree(entry.path, staged, symlinks=True, dirs_exist_ok=True)
        return staged

    def promote_mirror(self, entry: CacheEntry, staged: Path) -> CacheEntry:
        """Swap a staged mirror into place and stamp its fetch time."""
        self._promote(staged, entry.path)
        updated = entry.model_copy(update={"last_fetched": _now()})
        _write_json_atomic(self.mirrors_dir / f"{entry.key}.json", updated.model_dump_json(indent=2))
        logger.info("Updated mirror %s", entry.key)
        return updated

    # ------------------------------------------------------------------
    # Checkouts
    # ------------------------------------------------------------------

    def checkout_name(self, key: str, commit: str) -> str:
        return f"{key}-{commit[:_COMMIT_PREFIX]}"

    def resolve_checkout(self, key: str, commit: str) -> CheckoutEntry | None:
        """Existing checkout of ``commit``, with its last-access time refreshed."""
        name = self.checkout_name(key, commit)
        path = self.checkouts_dir / name
        meta = self.checkouts_dir / f"{name}.json"
        if not path.is_dir():
            logger.debug("Checkout miss: %s", name)
            return None

        entry = None
        if meta.exists():
            try:
                entry = CheckoutEntry.model_validate_json(meta.read_text(encoding="utf-8"))
            except ValueError as e:
                logger.warning("Rewriting unreadable checkout metadata %s: %s", meta, e)
        if entry is not None and entry.commit != commit:
            # Prefix collision with a different commit
            return None

        now = _now()
        if entry is None:
            entry = CheckoutEntry(key=key, commit=commit, path=path, created_at=now, last_access=now)
        entry = entry.model_copy(update={"path": path, "last_access": now})
        _write_json_atomic(meta, entry.model_dump_json(indent=2))
        logger.debug("Checkout hit: %s", name)
        return entry

    def stage_checkout(self, key: str, commit: str) -> Path:
        return self._stage(f"checkout-{self.checkout_name(key, commit)}-")

    def record_checkout(self, key: str, commit: str, tree: Path) -> CheckoutEntry:
        """Register a materialized tree, replacing any prior entry for the commit."""
        name = self.checkout_name(key, commit)
        path = self.checkouts_dir / name
        self._promote(tree, path)
        now = _now()
        entry = CheckoutEntry(key=key, commit=commit, path=path, created_at=now, last_access=now)
        _write_json_atomic(self.checkouts_dir / f"{name}.json", entry.model_dump_json(indent=2))
        logger.info("Recorded checkout %s", name)
        return entry

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def discard(self, staged: Path) -> None:
        shutil.rmtree(staged, ignore_errors=True)

    def evict(self, max_age: timedelta) -> int:
        """Remove checkouts not accessed within ``max_age``. Mirrors are kept."""
        if not self.checkouts_dir.exists():
            return 0

        cutoff = _now() - max_age
        removed = 0
        for path in self._entries(self.checkouts_dir):
            meta = self.checkouts_dir / f"{path.name}.json"
            last_access = self._last_access(path, meta)
            if last_access >= cutoff:
                continue
            self._remove_entry(path)
            meta.unlink(missing_ok=True)
            removed += 1
            logger.debug("Evicted checkout %s", path.name)

        if removed:
            logger.info("Evicted %d checkout(s) older than %s", removed, max_age)
        return removed

    def purge_all(self) -> int:
        """Remove both tiers. Returns the number of entries removed."""
        removed = 0
        for tier in (self.mirrors_dir, self.checkouts_dir):
            removed += len(self._entries(tier))
            shutil.rmtree(tier, ignore_errors=True)
        shutil.rmtree(self.tmp_dir, ignore_errors=True)
        logger.info("Purged %d cache entries from %s", removed, self.root)
        return removed

    def stats(self) -> dict:
        """Return cache directory stats."""
        mirrors = self._entries(self.mirrors_dir)
        checkouts = self._entries(self.checkouts_dir)
        return {
            "path": str(self.root),
            "mirrors": len(mirrors),
            "checkouts": len(checkouts),
            "size_bytes": sum(_dir_size(p.resolve()) for p in mirrors + checkouts),
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _stage(self, prefix: str) -> Path:
        self.tmp_dir.mkdir(parents=True, exist_ok=True)
        return Path(tempfile.mkdtemp(prefix=prefix, dir=self.tmp_dir))

    @staticmethod
    def _entries(tier: Path) -> list[Path]:
        """Published entries of a tier; the store and temporary links start with a dot."""
        if not tier.exists():
            return []
        return [p for p in tier.iterdir() if not p.name.startswith(".") and p.is_dir()]

    @staticmethod
    def _version_of(entry: Path) -> Path | None:
        """Store directory an entry symlink points at."""
        if not entry.is_symlink():
            return None
        return entry.parent / os.readlink(entry)

    def _remove_entry(self, entry: Path) -> None:
        version = self._version_of(entry)
        if version is None:
            shutil.rmtree(entry, ignore_errors=True)
            return
        entry.unlink(missing_ok=True)
        shutil.rmtree(version, ignore_errors=True)

    def _promote(self, staged: Path, final: Path) -> None:
        """Publish ``staged`` under ``final`` with a single rename.

        The staged tree moves into the tier's store, then a new relative
        symlink replaces ``final``. The version it replaced is deleted.
        """
        store = final.parent / _STORE
        store.mkdir(parents=True, exist_ok=True)
        version = store / f"{final.name}-{uuid.uuid4().hex[:12]}"
        os.replace(staged, version)

        previous = self._version_of(final)
        if previous is None and final.is_dir():
            # Plain directory left by an older cache layout
            previous = store / f"{final.name}-{uuid.uuid4().hex[:12]}"
            os.replace(final, previous)

        link = final.parent / f".{final.name}.{uuid.uuid4().hex[:8]}.link"
        os.symlink(Path(_STORE) / version.name, link, target_is_directory=True)
        try:
            os.replace(link, final)
        except OSError:
            link.unlink(missing_ok=True)
            shutil.rmtree(version, ignore_errors=True)
            raise

        if previous is not None and previous != version:
            shutil.rmtree(previous, ignore_errors=True)

    @staticmethod
    def _last_access(path: Path, meta: Path) -> datetime:
        if meta.exists():
            try:
                return CheckoutEntry.model_validate_json(meta.read_text(encoding="utf-8")).last_access
            except ValueError:
                pass
        return datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
