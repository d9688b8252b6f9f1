"""Merge gate for candidate ranges (NOT a merge implementation).

Replay only handles linear change sets. A merge whose combined diff against
all of its parents is non-empty on tracked paths carries content that belongs
to neither side, so the run aborts before anything is replayed.
"""

from __future__ import annotations

import logging

from ..core.errors import NonEmptyMergeError
from ..core.git_utils import GitBackend
from ..core.path_map import PathMapper

logger = logging.getLogger(__name__)


class MergeValidator:
    def __init__(self, backend: GitBackend, mapper: PathMapper):
        self.backend = backend
        self.mapper = mapper

    def merges_in(self, baseline: str, tip: str) -> list[str]:
        return self.backend.list_commits(baseline, tip, self.mapper.source_paths, merges=True)

    def validate(self, baseline: str, tip: str) -> list[str]:
        """Check every tracked-path merge in ``baseline..tip``.

        Returns the merges that were inspected; raises ``NonEmptyMergeError``
        on the first one carrying its own change.
        """
        merges = self.merges_in(baseline, tip)
        for merge in merges:
            desc = self.backend.describe(merge)
            logger.info("MERGE:\t%s", desc)
            changed = self.backend.merge_net_change(merge, self.mapper.source_paths)
            if changed:
                raise NonEmptyMergeError(merge, desc, changed)
        return merges
