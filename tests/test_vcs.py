from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from blamels.exceptions import InvariantViolation, PathOutsideRepository, RepositoryNotFound
from blamels.vcs import (
    INDEX_CHANGES,
    WORKTREE_CHANGES,
    Committed,
    FileStatus,
    Hunk,
    Repository,
    Uncommitted,
    commit_ref,
    open_repository,
    parse_porcelain_blame,
    parse_status_code,
)

SHA_A = "a" * 40
ZERO = "0" * 40

PORCELAIN = "\n".join(
    [
        f"{SHA_A} 1 1 2",
        "author Ada Lovelace",
        "author-time 1704456000",
        "summary Write notes",
        "filename notes.txt",
        "\tone",
        f"{SHA_A} 2 2",
        "\ttwo",
        f"{ZERO} 3 3 1",
        "author Not Committed Yet",
        "filename notes.txt",
        "\tTHREE",
        f"{SHA_A} 4 4 1",
        "\tfour",
    ]
)


def test_commit_ref_maps_zero_id_to_uncommitted() -> None:
    assert commit_ref(ZERO) == Uncommitted()
    assert commit_ref(SHA_A) == Committed(SHA_A)


def test_parse_porcelain_groups_lines_into_hunks() -> None:
    assert parse_porcelain_blame(PORCELAIN) == [
        Hunk(commit=Committed(SHA_A), start_line=1, lines=2),
        Hunk(commit=Uncommitted(), start_line=3, lines=1),
        Hunk(commit=Committed(SHA_A), start_line=4, lines=1),
    ]


def test_parse_porcelain_ignores_content_that_looks_like_a_header() -> None:
    output = f"{SHA_A} 1 1 1\nfilename x\n\t{SHA_A} 9 9 9\n"

    assert parse_porcelain_blame(output) == [Hunk(commit=Committed(SHA_A), start_line=1, lines=1)]


@pytest.mark.parametrize(
    ("code", "expected"),
    [
        (" M", FileStatus.WT_MODIFIED),
        ("M ", FileStatus.INDEX_MODIFIED),
        ("MM", FileStatus.INDEX_MODIFIED | FileStatus.WT_MODIFIED),
        ("A ", FileStatus.INDEX_NEW),
        ("AD", FileStatus.INDEX_NEW | FileStatus.WT_DELETED),
        ("D ", FileStatus.INDEX_DELETED),
        ("R ", FileStatus.INDEX_RENAMED),
        ("??", FileStatus.WT_NEW),
        ("!!", FileStatus.IGNORED),
        ("UU", FileStatus.CONFLICTED),
    ],
)
def test_parse_status_code(code: str, expected: FileStatus) -> None:
    assert parse_status_code(code) == expected


def test_change_groups_are_disjoint() -> None:
    assert not (INDEX_CHANGES & WORKTREE_CHANGES)


def test_discover_outside_repository(tmp_path: Path) -> None:
    with pytest.raises(RepositoryNotFound):
        Repository.discover(tmp_path / "missing" / "file.txt")


def test_discover_from_nested_file(git_repo, commit_file) -> None:
    commit_file(git_repo, "pkg/module.txt", "x\n", "Add module")
    workdir = Path(str(git_repo.working_tree_dir))

    with open_repository(workdir / "pkg" / "module.txt") as repository:
        assert repository.workdir == workdir
        assert repository.relativize(workdir / "pkg" / "module.txt") == "pkg/module.txt"


def test_relativize_rejects_foreign_path(git_repo, tmp_path: Path) -> None:
    with open_repository(git_repo.working_tree_dir) as repository:
        with pytest.raises(PathOutsideRepository):
            repository.relativize(tmp_path / "other.txt")


def test_find_commit_reads_author_message_and_time(git_repo, commit_file) -> None:
    sha = commit_file(git_repo, "a.txt", "a\n", "Subject\n\nBody")

    with open_repository(git_repo.working_tree_dir) as repository:
        info = repository.find_commit(sha)

    assert info.id == sha
    assert info.author_name == "Ada Lovelace"
    assert info.message.startswith("Subject\n\nBody")
    assert info.timestamp == 1704456000


def test_status_reports_worktree_changes(git_repo, commit_file) -> None:
    commit_file(git_repo, "a.txt", "a\n", "Add a")
    workdir = Path(str(git_repo.working_tree_dir))

    with open_repository(workdir) as repository:
        assert repository.status("a.txt") == FileStatus.CURRENT
        (workdir / "a.txt").write_text("changed\n")
        assert repository.status("a.txt") == FileStatus.WT_MODIFIED
        (workdir / "b.txt").write_text("new\n")
        assert repository.status("b.txt") == FileStatus.WT_NEW


def test_blame_buffer_marks_edited_lines(git_repo, commit_file) -> None:
    sha = commit_file(git_repo, "a.txt", "one\ntwo\n", "Add a")

    with open_repository(git_repo.working_tree_dir) as repository:
        hunks = repository.blame("a.txt", b"one\nTWO\nthree\n")

    assert hunks[0] == Hunk(commit=Committed(sha), start_line=1, lines=1)
    assert sum(hunk.lines for hunk in hunks) == 3
    assert all(hunk.commit == Uncommitted() for hunk in hunks[1:])


class _CommitOverrideRepo:
    """Delegates to a real `Repo` but answers `commit()` with a stand-in."""

    def __init__(self, repo, commit) -> None:
        self._repo = repo
        self._commit = commit

    def commit(self, rev):
        return self._commit

    def __getattr__(self, name):
        return getattr(self._repo, name)


@pytest.mark.parametrize(
    "commit",
    [
        SimpleNamespace(hexsha="a" * 40, author=None, message="Subject", committed_date=0),
        SimpleNamespace(
            hexsha="a" * 40, author=SimpleNamespace(name=None), message="Subject", committed_date=0
        ),
        SimpleNamespace(
            hexsha="a" * 40, author=SimpleNamespace(name="Ada"), message=None, committed_date=0
        ),
    ],
)
def test_find_commit_without_author_or_message_is_invariant_violation(git_repo, commit) -> None:
    repository = Repository(_CommitOverrideRepo(git_repo, commit))

    with pytest.raises(InvariantViolation) as excinfo:
        repository.find_commit("a" * 40)
    assert excinfo.value.env == {"commit": "a" * 40}
