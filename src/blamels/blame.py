"""Blame resolution: cursor position to commit attribution text."""

from __future__ import annotations

from contextlib import AbstractContextManager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable

from blamels.date_time import WEEK_IN_SECONDS, humanize
from blamels.exceptions import BlameUnavailable, LineNotFound
from blamels.invariants import never
from blamels.vcs import CommitInfo, Committed, Hunk, Repository, Uncommitted, open_repository
from blamels.vfs import OverlayFileSystem

UNCOMMITTED_TEXT = "Uncommitted changes"
SHORT_ID_LENGTH = 8

RepositoryFactory = Callable[[str | Path], AbstractContextManager[Repository]]


@dataclass(frozen=True)
class BlameQuery:
    path: str
    line: int

    @property
    def git_line(self) -> int:
        """Editor lines are zero-indexed, git lines start at one."""
        return self.line + 1


@dataclass(frozen=True)
class AttributionRecord:
    author_name: str
    timestamp: int
    short_id: str
    subject: str
    body: str = ""

    @classmethod
    def from_commit(cls, commit: CommitInfo) -> AttributionRecord:
        subject, body = split_message(commit.message)
        return cls(
            author_name=commit.author_name,
            timestamp=commit.timestamp,
            short_id=commit.id[:SHORT_ID_LENGTH],
            subject=subject,
            body=body,
        )

    def render(self, *, now: int | None = None, window_seconds: int = WEEK_IN_SECONDS) -> str:
        when = humanize(self.timestamp, now=now, window_seconds=window_seconds)
        text = f"**{self.subject}**\n*{self.author_name} • {when} • {self.short_id}*\n\n{self.body}"
        return text.strip()


def split_message(message: str) -> tuple[str, str]:
    message = message.strip()
    subject, separator, body = message.partition("\n\n")
    if not separator:
        return message, ""
    return subject, body


def find_hunk_for_line(hunks: Iterable[Hunk], line: int) -> Hunk:
    """Return the hunk covering one-indexed `line`.

    Hunks must be in ascending file order; the walk accumulates their lengths
    rather than trusting start offsets.
    """
    current = 1
    for hunk in hunks:
        current += hunk.lines
        if line < current:
            return hunk
    raise LineNotFound(line, current - 1)


def attribution_text(
    repository: Repository,
    hunk: Hunk,
    *,
    now: int | None = None,
    uncommitted_text: str = UNCOMMITTED_TEXT,
    window_seconds: int = WEEK_IN_SECONDS,
) -> str:
    commit = hunk.commit
    if isinstance(commit, Uncommitted):
        return uncommitted_text
    if not isinstance(commit, Committed):
        never("unknown commit reference", commit=commit)
    record = AttributionRecord.from_commit(repository.find_commit(commit.id))
    return record.render(now=now, window_seconds=window_seconds)


def resolve(
    query: BlameQuery,
    *,
    fs: OverlayFileSystem,
    repository_factory: RepositoryFactory = open_repository,
    now: int | None = None,
    uncommitted_text: str = UNCOMMITTED_TEXT,
    window_seconds: int = WEEK_IN_SECONDS,
) -> str:
    """Attribution text for the line under the cursor.

    Raises a `Declined` subclass when there is nothing to show (no repository,
    file unreadable, backend cannot blame the file, line past the end of
    blame coverage).
    """
    with repository_factory(query.path) as repository:
        try:
            with fs.open_file(query.path) as handle:
                buffer = handle.read()
        except OSError as exc:
            raise BlameUnavailable(f"cannot read {query.path}") from exc
        relative_path = repository.relativize(query.path)
        hunks = repository.blame(relative_path, buffer)
        hunk = find_hunk_for_line(hunks, query.git_line)
        return attribution_text(
            repository,
            hunk,
            now=now,
            uncommitted_text=uncommitted_text,
            window_seconds=window_seconds,
        )
