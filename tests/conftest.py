from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


import pytest
from git import Actor, Repo

AUTHOR = Actor("Ada Lovelace", "ada@example.com")
# 2024-01-05 12:00:00 UTC
COMMIT_TIME = 1704456000


@pytest.fixture
def git_repo(tmp_path: Path) -> Repo:
    repo = Repo.init(tmp_path / "repo")
    with repo.config_writer() as writer:
        writer.set_value("user", "name", AUTHOR.name)
        writer.set_value("user", "email", AUTHOR.email)
    yield repo
    repo.close()


@pytest.fixture
def commit_file() -> Callable[..., str]:
    def _commit(
        repo: Repo,
        name: str,
        text: str,
        message: str,
        *,
        timestamp: int = COMMIT_TIME,
    ) -> str:
        path = Path(str(repo.working_tree_dir)) / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        repo.index.add([name])
        date = f"{timestamp} +0000"
        commit = repo.index.commit(
            message,
            author=AUTHOR,
            committer=AUTHOR,
            author_date=date,
            commit_date=date,
        )
        return commit.hexsha

    return _commit
