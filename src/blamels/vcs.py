"""Version-control query interface backed by git through GitPython.

Everything the rest of blamels knows about git goes through `Repository`.
Handles are opened per request with `open_repository` and closed when the
request finishes; nothing is cached between requests.
"""

from __future__ import annotations

import enum
import os
import re
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from git import Repo
from git.exc import BadName, BadObject, GitCommandError, InvalidGitRepositoryError, NoSuchPathError

from blamels.exceptions import (
    BlameUnavailable,
    PathOutsideRepository,
    PersistenceError,
    RepositoryNotFound,
    StatusUnavailable,
)
from blamels.invariants import never

# `<sha> <orig_line> <final_line> [<lines_in_group>]`; the group size only
# appears on the first line of a group.
_PORCELAIN_HEADER_RE = re.compile(
    r"^(?P<sha>[0-9a-f]{40}|[0-9a-f]{64}) (?P<orig>\d+) (?P<final>\d+)(?: (?P<count>\d+))?$"
)


@dataclass(frozen=True)
class Committed:
    id: str


@dataclass(frozen=True)
class Uncommitted:
    pass


CommitRef = Committed | Uncommitted


def commit_ref(sha: str) -> CommitRef:
    """Map a raw object id to a `CommitRef`; the all-zero id means uncommitted."""
    if sha.strip("0") == "":
        return Uncommitted()
    return Committed(sha)


@dataclass(frozen=True)
class Hunk:
    commit: CommitRef
    start_line: int
    lines: int


@dataclass(frozen=True)
class CommitInfo:
    id: str
    author_name: str
    message: str
    timestamp: int


class FileStatus(enum.Flag):
    CURRENT = 0
    INDEX_NEW = enum.auto()
    INDEX_MODIFIED = enum.auto()
    INDEX_DELETED = enum.auto()
    INDEX_RENAMED = enum.auto()
    INDEX_TYPECHANGE = enum.auto()
    WT_NEW = enum.auto()
    WT_MODIFIED = enum.auto()
    WT_DELETED = enum.auto()
    WT_TYPECHANGE = enum.auto()
    WT_RENAMED = enum.auto()
    IGNORED = enum.auto()
    CONFLICTED = enum.auto()


INDEX_CHANGES = (
    FileStatus.INDEX_NEW
    | FileStatus.INDEX_MODIFIED
    | FileStatus.INDEX_DELETED
    | FileStatus.INDEX_RENAMED
    | FileStatus.INDEX_TYPECHANGE
)
WORKTREE_CHANGES = (
    FileStatus.WT_NEW
    | FileStatus.WT_MODIFIED
    | FileStatus.WT_DELETED
    | FileStatus.WT_TYPECHANGE
    | FileStatus.WT_RENAMED
)

_INDEX_CODES = {
    "A": FileStatus.INDEX_NEW,
    "C": FileStatus.INDEX_NEW,
    "M": FileStatus.INDEX_MODIFIED,
    "D": FileStatus.INDEX_DELETED,
    "R": FileStatus.INDEX_RENAMED,
    "T": FileStatus.INDEX_TYPECHANGE,
}
_WORKTREE_CODES = {
    "A": FileStatus.WT_NEW,
    "M": FileStatus.WT_MODIFIED,
    "D": FileStatus.WT_DELETED,
    "R": FileStatus.WT_RENAMED,
    "T": FileStatus.WT_TYPECHANGE,
}
_CONFLICT_CODES = {"DD", "AU", "UD", "UA", "DU", "AA", "UU"}


def parse_status_code(code: str) -> FileStatus:
    """Translate a two-letter `git status --porcelain` code into flags."""
    if code == "??":
        return FileStatus.WT_NEW
    if code == "!!":
        return FileStatus.IGNORED
    if code in _CONFLICT_CODES:
        return FileStatus.CONFLICTED
    flags = FileStatus.CURRENT
    flags |= _INDEX_CODES.get(code[:1], FileStatus.CURRENT)
    flags |= _WORKTREE_CODES.get(code[1:2], FileStatus.CURRENT)
    return flags


def parse_porcelain_blame(output: str) -> list[Hunk]:
    """Group `git blame --porcelain` output into hunks in file order."""
    hunks: list[Hunk] = []
    for line in output.split("\n"):
        if not line or line.startswith("\t"):
            continue
        match = _PORCELAIN_HEADER_RE.match(line)
        if match is None or match.group("count") is None:
            continue
        hunks.append(
            Hunk(
                commit=commit_ref(match.group("sha")),
                start_line=int(match.group("final")),
                lines=int(match.group("count")),
            )
        )
    return hunks


class Repository:
    def __init__(self, repo: Repo) -> None:
        self._repo = repo
        # `Repo.index` builds a fresh IndexFile on every access; keep one so
        # staged edits survive until `index_write`.
        self._index = repo.index

    @classmethod
    def discover(cls, path: str | Path) -> Repository:
        """Open the repository owning `path`, searching parent directories."""
        start = Path(path)
        if not start.is_dir():
            start = start.parent
        try:
            repo = Repo(start, search_parent_directories=True)
        except (InvalidGitRepositoryError, NoSuchPathError) as exc:
            raise RepositoryNotFound(f"no repository found for {path}") from exc
        if repo.working_tree_dir is None:
            repo.close()
            raise RepositoryNotFound(f"repository for {path} has no working tree")
        return cls(repo)

    @property
    def workdir(self) -> Path:
        return Path(str(self._repo.working_tree_dir))

    def relativize(self, path: str | Path) -> str:
        candidate = Path(path)
        try:
            return candidate.relative_to(self.workdir).as_posix()
        except ValueError:
            pass
        try:
            return candidate.resolve().relative_to(self.workdir.resolve()).as_posix()
        except ValueError:
            raise PathOutsideRepository(str(path), str(self.workdir)) from None

    def blame(self, relative_path: str, buffer: bytes) -> list[Hunk]:
        """Blame `relative_path` as if its content were `buffer`."""
        fd, contents_path = tempfile.mkstemp(prefix="blamels-", suffix=".contents")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(buffer)
            try:
                output = self._repo.git.blame(
                    "--porcelain", "--contents", contents_path, "--", relative_path
                )
            except GitCommandError as exc:
                raise BlameUnavailable(f"git blame failed for {relative_path}") from exc
        finally:
            os.unlink(contents_path)
        return parse_porcelain_blame(output)

    def find_commit(self, commit_id: str) -> CommitInfo:
        try:
            commit = self._repo.commit(commit_id)
        except (BadName, BadObject, ValueError):
            never("blamed commit is missing from repository", commit=commit_id)
        author = commit.author
        if author is None or author.name is None:
            never("commit has no author name", commit=commit_id)
        message = commit.message
        if isinstance(message, bytes):
            message = message.decode("utf-8", errors="replace")
        if message is None:
            never("commit has no message", commit=commit_id)
        return CommitInfo(
            id=commit.hexsha,
            author_name=author.name,
            message=message,
            timestamp=int(commit.committed_date),
        )

    def status(self, relative_path: str) -> FileStatus:
        try:
            output = self._repo.git.status(
                "--porcelain=v1", "-z", "--ignored", "--", relative_path
            )
        except GitCommandError as exc:
            raise StatusUnavailable(f"git status failed for {relative_path}") from exc
        flags = FileStatus.CURRENT
        entries = iter(output.split("\0"))
        for entry in entries:
            if len(entry) < 4 or entry[2] != " ":
                continue
            code = entry[:2]
            flags |= parse_status_code(code)
            if "R" in code or "C" in code:
                # Renames and copies carry the source path as a separate field.
                next(entries, None)
        return flags

    def index_add(self, relative_path: str) -> None:
        try:
            self._index.add([relative_path], write=False)
        except (GitCommandError, OSError) as exc:
            raise PersistenceError(f"failed to add {relative_path} to index") from exc

    def index_remove(self, relative_path: str) -> None:
        try:
            self._index.remove([relative_path], working_tree=False, f=True)
        except (GitCommandError, OSError) as exc:
            raise PersistenceError(f"failed to remove {relative_path} from index") from exc

    def index_write(self) -> None:
        try:
            self._index.write()
        except OSError as exc:
            raise PersistenceError("failed to write index") from exc

    def close(self) -> None:
        self._repo.close()


@contextmanager
def open_repository(path: str | Path) -> Iterator[Repository]:
    repository = Repository.discover(path)
    try:
        yield repository
    finally:
        repository.close()
