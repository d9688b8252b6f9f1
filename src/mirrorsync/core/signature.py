"""Content-based commit identity.

A signature is a single line made of the subject, the ISO-8601 author date,
the body with newlines folded into ``|`` and the shortstat. Cherry-picking
changes the hash but keeps all of these, so two commits with the same
signature are very likely the same change. Signatures are not unique: routine
commits (version bumps and the like) can collide, which is why a lookup
returns every match.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping

from .git_utils import Commit, GitBackend
from .path_map import PathMapper

logger = logging.getLogger(__name__)

DEFAULT_WINDOW = 500


def commit_signature(commit: Commit) -> str:
    """Build the single-line signature of ``commit``."""
    body = "|".join(line.rstrip() for line in commit.body.strip().splitlines())
    return f'("{commit.subject}")|{commit.author_date}|{body}|{commit.shortstat.strip()}'


class SignatureIndex(Mapping):
    """Read-only map from signature to the mirror commits carrying it.

    Matches keep history order (newest first).
    """

    def __init__(self, commits: list[Commit]):
        index: dict[str, list[Commit]] = {}
        for commit in commits:
            index.setdefault(commit_signature(commit), []).append(commit)
        self._index = {sig: tuple(matches) for sig, matches in index.items()}
        self._size = len(commits)

    @classmethod
    def build(cls, backend: GitBackend, mapper: PathMapper, window: int = DEFAULT_WINDOW) -> SignatureIndex:
        """Index the latest ``window`` mirror commits touching the mirrored paths."""
        commits = backend.log_commits(window, mapper.mirror_stat_pathspec())
        logger.info("Indexed %d existing mirror commit signatures", len(commits))
        return cls(commits)

    def lookup(self, signature: str) -> list[Commit]:
        return list(self._index.get(signature, ()))

    @property
    def commit_count(self) -> int:
        return self._size

    def __getitem__(self, signature: str) -> tuple[Commit, ...]:
        return self._index[signature]

    def __iter__(self) -> Iterator[str]:
        return iter(self._index)

    def __len__(self) -> int:
        return len(self._index)
