"""Source-tree to mirror-tree path mapping and the tree transforms built on it."""

from __future__ import annotations

from dataclasses import dataclass

from .errors import ConfigurationError
from .git_utils import TreeEntry

DEFAULT_STAGING_ROOT = "__mirror"


def _normalize(path: str) -> str:
    return path.strip().strip("/")


def _under(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


@dataclass(frozen=True)
class PathMapper:
    """Many-to-one mapping from source paths to mirror paths.

    A source path may name a directory (mapped recursively) or a single file.
    When several source paths cover the same file, the longest one wins.
    ``exclude`` names mirror-relative paths that only exist in the mirror and
    are never projected from the source tree.
    """

    mapping: tuple[tuple[str, str], ...]
    exclude: frozenset[str] = frozenset()
    staging_root: str = DEFAULT_STAGING_ROOT

    @classmethod
    def from_config(cls, paths_config: dict) -> PathMapper:
        raw_map = paths_config.get("map") or {}
        if not raw_map:
            raise ConfigurationError("paths.map is empty: nothing to synchronize")
        mapping = []
        for source, mirror in raw_map.items():
            source, mirror = _normalize(source), _normalize(mirror)
            if not source or not mirror:
                raise ConfigurationError(f"Invalid path mapping entry: {source!r} -> {mirror!r}")
            mapping.append((source, mirror))
        exclude = frozenset(_normalize(p) for p in paths_config.get("exclude", []) if _normalize(p))
        staging_root = _normalize(paths_config.get("staging_root") or DEFAULT_STAGING_ROOT)
        return cls(mapping=tuple(mapping), exclude=exclude, staging_root=staging_root)

    @property
    def source_paths(self) -> list[str]:
        return [source for source, _ in self.mapping]

    @property
    def mirror_paths(self) -> list[str]:
        seen: dict[str, None] = {}
        for _, mirror in self.mapping:
            seen.setdefault(mirror, None)
        return list(seen)

    def map_path(self, source_path: str) -> str | None:
        """Return the mirror path for ``source_path`` or None if it is not tracked."""
        best: tuple[str, str] | None = None
        for source, mirror in self.mapping:
            if _under(source_path, source) and (best is None or len(source) > len(best[0])):
                best = (source, mirror)
        if best is None:
            return None
        source, mirror = best
        return mirror + source_path[len(source):]

    def source_path_for(self, mirror_path: str) -> str | None:
        """Reverse lookup used to exclude mirror-only files on the source side."""
        best: tuple[str, str] | None = None
        for source, mirror in self.mapping:
            if _under(mirror_path, mirror) and (best is None or len(mirror) > len(best[1])):
                best = (source, mirror)
        if best is None:
            return None
        source, mirror = best
        return source + mirror_path[len(mirror):]

    def is_excluded(self, mirror_path: str) -> bool:
        return mirror_path in self.exclude

    def is_projected(self, source_path: str) -> bool:
        """True if ``source_path`` ends up in the mirror."""
        mirror = self.map_path(source_path)
        return mirror is not None and not self.is_excluded(mirror)

    def in_view(self, mirror_path: str) -> bool:
        """True for mirror files that must match the source projection."""
        if self.is_excluded(mirror_path):
            return False
        return any(_under(mirror_path, mirror) for mirror in self.mirror_paths)

    def source_stat_pathspec(self) -> list[str]:
        """Pathspec covering exactly the source files that get projected."""
        spec = list(self.source_paths)
        for mirror_path in sorted(self.exclude):
            source = self.source_path_for(mirror_path)
            if source is not None:
                spec.append(f":(exclude){source}")
        return spec

    def mirror_stat_pathspec(self) -> list[str]:
        """Pathspec covering the mirror files that mirror the source tree."""
        spec = list(self.mirror_paths)
        spec.extend(f":(exclude){path}" for path in sorted(self.exclude))
        return spec

    def move(self, entries: list[TreeEntry]) -> list[TreeEntry]:
        """Relocate mapped paths under the staging root, dropping excluded files.

        Unmapped entries are left where they are.
        """
        moved: list[TreeEntry] = []
        for entry in entries:
            mirror = self.map_path(entry.path)
            if mirror is None:
                moved.append(entry)
                continue
            if self.is_excluded(mirror):
                continue
            moved.append(entry.relocated(f"{self.staging_root}/{mirror}"))
        return moved

    def promote(self, entries: list[TreeEntry]) -> list[TreeEntry]:
        """Re-root entries at the staging root, discarding everything outside it."""
        prefix = self.staging_root + "/"
        return [entry.relocated(entry.path[len(prefix):]) for entry in entries if entry.path.startswith(prefix)]

    def project(self, entries: list[TreeEntry]) -> list[TreeEntry]:
        return self.promote(self.move(entries))
