"""Consistency check between the source tree projection and the mirror."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from ..core.git_utils import GitBackend
from ..core.path_map import PathMapper

logger = logging.getLogger(__name__)


@dataclass
class VerifyReport:
    source_files: list[str] = field(default_factory=list)
    mirror_files: list[str] = field(default_factory=list)
    missing_in_mirror: list[str] = field(default_factory=list)
    extra_in_mirror: list[str] = field(default_factory=list)
    differing: dict[str, list[str]] = field(default_factory=dict)

    @property
    def consistent(self) -> bool:
        return not (self.missing_in_mirror or self.extra_in_mirror or self.differing)


def _read(path: Path) -> bytes | None:
    if path.is_symlink():
        return os.readlink(path).encode()
    if not path.is_file():
        return None
    return path.read_bytes()


class ConsistencyVerifier:
    """Re-projects the source tip and compares it file by file with the mirror."""

    def __init__(self, source: GitBackend, mirror: GitBackend, mapper: PathMapper):
        self.source = source
        self.mirror = mirror
        self.mapper = mapper

    def materialize_source(self, tip: str, view_dir: Path) -> list[str]:
        """Write the projected files of ``tip`` under ``view_dir``."""
        files = []
        for entry in self.mapper.project(self.source.ls_tree(tip)):
            if entry.type != "blob":
                logger.debug("Skipping %s entry %s", entry.type, entry.path)
                continue
            target = view_dir / entry.path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(self.source.read_blob(entry.sha))
            files.append(entry.path)
        return sorted(files)

    def mirror_files(self) -> list[str]:
        return sorted(p for p in self.mirror.tracked_files(self.mapper.mirror_paths) if self.mapper.in_view(p))

    def verify(self, tip: str, view_dir: Path) -> VerifyReport:
        view_dir.mkdir(parents=True, exist_ok=True)
        source_files = self.materialize_source(tip, view_dir)
        mirror_files = self.mirror_files()
        report = VerifyReport(source_files=source_files, mirror_files=mirror_files)

        logger.info("Comparing list of files...")
        source_set, mirror_set = set(source_files), set(mirror_files)
        report.missing_in_mirror = sorted(source_set - mirror_set)
        report.extra_in_mirror = sorted(mirror_set - source_set)
        for path in report.missing_in_mirror:
            logger.warning("Only in source projection: %s", path)
        for path in report.extra_in_mirror:
            logger.warning("Only in mirror: %s", path)

        logger.info("Comparing file contents...")
        mirror_root = Path(self.mirror.repo_path)
        for path in sorted(source_set & mirror_set):
            source_path, mirror_path = view_dir / path, mirror_root / path
            if _read(source_path) == _read(mirror_path):
                continue
            diff = self.mirror.diff_files(source_path, mirror_path) if mirror_path.exists() else []
            report.differing[path] = diff or ["(contents differ)"]
            logger.warning("%s and %s are different!", source_path, mirror_path)

        if report.consistent:
            logger.info("Great! Content is identical!")
        else:
            logger.warning("Unfortunately, there are consistency problems!")
        return report
