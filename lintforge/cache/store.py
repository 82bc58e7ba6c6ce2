# Dependency cache for one job.
#
#   key = sha256(salt, cached paths, relpath + sha256 of every key file)
#
# An entry is <directory>/<job>-<key>.tar.gz holding the cached paths,
# relative to the job's working directory. Restoring extracts the archive
# over the working directory. Entries beyond `keep` per job are pruned,
# oldest first.

from __future__ import annotations

import hashlib
import json
import logging
import re
import tarfile
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from lintforge.config.types import CacheConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheHit:
    hit: bool
    key: str
    reason: str


class JobCache(Protocol):
    def restore(self, workdir: Path) -> CacheHit: ...

    def save(self, workdir: Path) -> str | None: ...


class NullCache:
    def restore(self, workdir: Path) -> CacheHit:
        return CacheHit(False, "", "disabled")

    def save(self, workdir: Path) -> str | None:
        return None


def _hash_file(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


def _relative(raw: str) -> Path:
    path = Path(raw)
    if path.is_absolute() or ".." in path.parts:
        raise ValueError(f"cache path must stay inside the working directory: {raw}")
    return path


class DirectoryCache:
    def __init__(self, config: CacheConfig, *, job_name: str, salt: str = ""):
        self.config = config
        self.job_name = re.sub(r"[^A-Za-z0-9._-]+", "_", job_name)
        self.salt = salt

    def _root(self, workdir: Path) -> Path:
        root = Path(self.config.directory).expanduser()
        return root if root.is_absolute() else workdir / root

    def compute_key(self, workdir: Path) -> str:
        manifest = {
            "job": self.job_name,
            "salt": self.salt,
            "paths": sorted(self.config.paths),
            "key_files": {},
        }
        for raw in sorted(self.config.key_files):
            path = workdir / _relative(raw)
            manifest["key_files"][raw] = _hash_file(path) if path.is_file() else "missing"

        encoded = json.dumps(manifest, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(encoded.encode("utf-8")).hexdigest()

    def _archive(self, workdir: Path, key: str) -> Path:
        return self._root(workdir) / f"{self.job_name}-{key}.tar.gz"

    def restore(self, workdir: Path) -> CacheHit:
        if not self.config.enabled or not self.config.paths:
            return CacheHit(False, "", "disabled")

        key = self.compute_key(workdir)
        archive = self._archive(workdir, key)
        if not archive.is_file():
            return CacheHit(False, key, f"miss ({key[:12]})")

        with tarfile.open(archive, "r:gz") as tar:
            tar.extractall(workdir, filter="data")
        return CacheHit(True, key, f"hit ({key[:12]})")

    def save(self, workdir: Path) -> str | None:
        if not self.config.enabled or not self.config.paths:
            return None

        paths = [_relative(raw) for raw in self.config.paths]
        key = self.compute_key(workdir)
        archive = self._archive(workdir, key)
        archive.parent.mkdir(parents=True, exist_ok=True)

        tmp = archive.with_name(archive.name + ".tmp")
        try:
            with tarfile.open(tmp, "w:gz") as tar:
                for rel in paths:
                    if (workdir / rel).exists():
                        tar.add(workdir / rel, arcname=str(rel))
                    else:
                        logger.debug("cache path %s does not exist, not saved", rel)
            tmp.replace(archive)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise

        self.prune(workdir)
        return key

    def _entries(self, workdir: Path) -> list[Path]:
        # "lints-extra-<key>" belongs to job "lints-extra", not "lints"
        pattern = re.compile(rf"{re.escape(self.job_name)}-[0-9a-f]{{64}}\.tar\.gz")
        return [
            p
            for p in self._root(workdir).glob(f"{self.job_name}-*.tar.gz")
            if pattern.fullmatch(p.name)
        ]

    def prune(self, workdir: Path) -> list[Path]:
        entries = sorted(
            self._entries(workdir),
            key=lambda p: p.stat().st_mtime,
            reverse=True,
        )
        removed = entries[self.config.keep :]
        for entry in removed:
            entry.unlink(missing_ok=True)
        return removed
